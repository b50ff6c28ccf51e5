"""Receipt reads for history, admin receipts and the print view."""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.tenant import TenantContext
from app.models.receipt import Receipt, ReceiptItem


@dataclass
class ReceiptFilters:
    payment_method: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    customer: Optional[str] = None
    staff_id: Optional[int] = None
    debt_unpaid: Optional[bool] = None  # True: unpaid debts only, False: settled debts only
    limit: Optional[int] = None


def list_receipts(db: Session, pharmacy_id: Optional[int], filters: Optional[ReceiptFilters] = None) -> List[Receipt]:
    """Newest first. pharmacy_id None means every pharmacy (admin view)."""
    filters = filters or ReceiptFilters()
    q = db.query(Receipt)
    if pharmacy_id is not None:
        q = q.filter(Receipt.pharmacy_id == pharmacy_id)
    if filters.payment_method:
        q = q.filter(Receipt.payment_method == filters.payment_method)
    if filters.created_from:
        q = q.filter(Receipt.created_at >= filters.created_from)
    if filters.created_to:
        q = q.filter(Receipt.created_at <= filters.created_to)
    if filters.customer:
        q = q.filter(Receipt.customer_name.ilike(f"%{filters.customer}%"))
    if filters.staff_id is not None:
        q = q.filter(Receipt.staff_id == filters.staff_id)
    if filters.debt_unpaid is True:
        q = q.filter(Receipt.payment_method == "debt", Receipt.debt_paid_at.is_(None))
    elif filters.debt_unpaid is False:
        q = q.filter(Receipt.payment_method == "debt", Receipt.debt_paid_at.isnot(None))

    limit = min(filters.limit or settings.RECEIPT_PAGE_LIMIT, settings.RECEIPT_PAGE_LIMIT)
    return q.order_by(Receipt.created_at.desc(), Receipt.id.desc()).limit(limit).all()


def get_receipt(db: Session, ctx: TenantContext, receipt_id: int) -> Optional[Receipt]:
    """Receipt with items and medicine names. None if missing or in another pharmacy."""
    q = (
        db.query(Receipt)
        .options(selectinload(Receipt.items).selectinload(ReceiptItem.medicine))
        .filter(Receipt.id == receipt_id)
    )
    if not ctx.is_admin:
        q = q.filter(Receipt.pharmacy_id == ctx.pharmacy_id)
    return q.first()
