"""Pricing snapshot: prices copied onto a sale at the moment it is made."""
from dataclasses import dataclass
from decimal import Decimal

from app.models.medicine import Medicine

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENT)


@dataclass(frozen=True)
class PriceSnapshot:
    medicine_id: int
    medicine_name: str
    buying_price: Decimal
    selling_price: Decimal


def take_snapshot(medicine: Medicine) -> PriceSnapshot:
    return PriceSnapshot(
        medicine_id=medicine.id,
        medicine_name=medicine.name,
        buying_price=to_money(medicine.buying_price),
        selling_price=to_money(medicine.selling_price),
    )
