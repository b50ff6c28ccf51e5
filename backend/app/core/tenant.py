"""Explicit caller identity passed into every core call."""
from dataclasses import dataclass
from typing import Optional

from app.models.staff import ROLE_ADMIN


@dataclass(frozen=True)
class TenantContext:
    pharmacy_id: Optional[int]
    staff_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def for_pharmacy(self, pharmacy_id: int) -> "TenantContext":
        """Admin acting inside one pharmacy."""
        return TenantContext(pharmacy_id=pharmacy_id, staff_id=self.staff_id, role=self.role)
