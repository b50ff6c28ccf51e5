"""
Role lookup for the dashboard APIs.
Staff see and change only their own pharmacy; admins see every pharmacy.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.exceptions import BusinessError
from app.core.tenant import TenantContext
from app.models.pharmacy import Pharmacy


def resolve_pharmacy_scope(db: Session, ctx: TenantContext, pharmacy_id: Optional[int]) -> Optional[int]:
    """
    Pharmacy a request acts on.

    Staff: always their own; naming another one is a 404.
    Admin: the one named (must exist), or None for "all pharmacies".
    """
    if not ctx.is_admin:
        if pharmacy_id is not None and pharmacy_id != ctx.pharmacy_id:
            AuditLog.log_access_denied("read", "pharmacy", pharmacy_id, ctx.staff_id, "Different pharmacy")
            raise BusinessError.not_found("Pharmacy")
        return ctx.pharmacy_id
    if pharmacy_id is None:
        return None
    if not db.query(Pharmacy.id).filter(Pharmacy.id == pharmacy_id).first():
        raise BusinessError.not_found("Pharmacy")
    return pharmacy_id


def require_pharmacy(db: Session, ctx: TenantContext, pharmacy_id: Optional[int]) -> TenantContext:
    """Context pinned to one pharmacy; admins must name it."""
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    if scope is None:
        raise BusinessError.bad_request("pharmacy_id is required")
    return ctx.for_pharmacy(scope)
