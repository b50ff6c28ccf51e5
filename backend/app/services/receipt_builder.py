"""Receipt building and persistence. Used by the sale coordinator.

Does not touch inventory. Receipt, items and the sale request state are
written in one local transaction so they land together or not at all.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.models.receipt import Receipt, ReceiptItem, PAYMENT_METHODS
from app.models.sale_request import SaleRequest
from app.services.pricing import PriceSnapshot, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineDraft:
    medicine_id: int
    quantity: int
    snapshot: PriceSnapshot

    @property
    def total(self) -> Decimal:
        return to_money(self.snapshot.selling_price * self.quantity)

    @property
    def profit(self) -> Decimal:
        return to_money((self.snapshot.selling_price - self.snapshot.buying_price) * self.quantity)


@dataclass(frozen=True)
class ReceiptDraft:
    pharmacy_id: int
    staff_id: int
    customer_name: Optional[str]
    payment_method: str
    lines: tuple

    @property
    def total_amount(self) -> Decimal:
        return sum((line.total for line in self.lines), Decimal("0.00"))


def sanitize_customer_name(name: Optional[str]) -> Optional[str]:
    """Collapse whitespace and strip markup-looking characters. Empty -> None."""
    if name is None:
        return None
    name = " ".join(name.strip().split())
    name = re.sub(r"[<>;]", "", name)[:100].strip()
    return name or None


def build_receipt(
    pharmacy_id: int,
    staff_id: int,
    customer_name: Optional[str],
    payment_method: str,
    lines: Sequence[LineDraft],
) -> ReceiptDraft:
    """Validate and total a sale. Pure: nothing is written.

    Raises:
        ValueError: empty items, non-positive quantity or unknown payment method
    """
    if not lines:
        raise ValueError("A sale needs at least one item")
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Unknown payment method '{payment_method}'")
    for line in lines:
        if line.quantity <= 0:
            raise ValueError(f"Quantity for medicine {line.medicine_id} must be positive")
    return ReceiptDraft(
        pharmacy_id=pharmacy_id,
        staff_id=staff_id,
        customer_name=sanitize_customer_name(customer_name),
        payment_method=payment_method,
        lines=tuple(lines),
    )


def persist_receipt(db: Session, draft: ReceiptDraft, sale_request: SaleRequest) -> Receipt:
    """Insert the receipt and its items and mark the sale request committed."""
    receipt = Receipt(
        pharmacy_id=draft.pharmacy_id,
        staff_id=draft.staff_id,
        customer_name=draft.customer_name,
        payment_method=draft.payment_method,
        total_amount=draft.total_amount,
    )
    db.add(receipt)
    db.flush()  # Get ID without committing

    items: List[ReceiptItem] = []
    for line in draft.lines:
        items.append(
            ReceiptItem(
                receipt_id=receipt.id,
                medicine_id=line.medicine_id,
                quantity=line.quantity,
                buying_price=line.snapshot.buying_price,
                selling_price=line.snapshot.selling_price,
                profit=line.profit,
                total=line.total,
            )
        )
    db.add_all(items)

    receipt_id = receipt.id
    sale_request.receipt_id = receipt_id
    sale_request.state = "COMMITTED"
    sale_request.error_code = None
    # Nothing touches the database after this commit
    db.commit()
    logger.info(f"Persisted receipt {receipt_id} with {len(items)} items, total {draft.total_amount}")
    return receipt
