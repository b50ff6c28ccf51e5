"""Customer debts (receipts paid by debt) and the owner's own AdminDebt book.

The two are independent: settling a receipt debt touches one receipt row and
nothing else, AdminDebt rows are plain CRUD.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import DebtAlreadySettled, NotADebtReceipt, ReceiptNotFound
from app.core.result import Err, Ok
from app.core.tenant import TenantContext
from app.models.admin_debt import AdminDebt
from app.models.receipt import Receipt, PAYMENT_DEBT
from app.schemas.debt import AdminDebtCreate, AdminDebtUpdate

logger = logging.getLogger(__name__)


def list_unpaid_debts(db: Session, pharmacy_id: Optional[int]) -> List[Receipt]:
    q = db.query(Receipt).filter(Receipt.payment_method == PAYMENT_DEBT, Receipt.debt_paid_at.is_(None))
    if pharmacy_id is not None:
        q = q.filter(Receipt.pharmacy_id == pharmacy_id)
    return q.order_by(Receipt.created_at.desc(), Receipt.id.desc()).all()


def unpaid_total(receipts: List[Receipt]) -> Decimal:
    return sum((Decimal(str(r.total_amount)) for r in receipts), Decimal("0.00"))


def mark_debt_paid(db: Session, ctx: TenantContext, receipt_id: int):
    """
    Settle a debt receipt.

    Returns:
        Ok(Receipt) or Err(ReceiptNotFound | NotADebtReceipt | DebtAlreadySettled)
    """
    q = db.query(Receipt).filter(Receipt.id == receipt_id)
    if not ctx.is_admin:
        q = q.filter(Receipt.pharmacy_id == ctx.pharmacy_id)
    receipt = q.first()
    if not receipt:
        return Err(ReceiptNotFound(receipt_id))
    if receipt.payment_method != PAYMENT_DEBT:
        return Err(NotADebtReceipt(receipt_id))

    # Conditional so two clerks settling at once cannot both win
    stmt = (
        update(Receipt)
        .where(Receipt.id == receipt_id, Receipt.debt_paid_at.is_(None))
        .values(debt_paid_at=datetime.now(timezone.utc), debt_paid_by=ctx.staff_id)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    if result.rowcount != 1:
        return Err(DebtAlreadySettled(receipt_id))

    db.refresh(receipt)
    logger.info(f"Debt on receipt {receipt_id} marked paid by staff {ctx.staff_id}")
    return Ok(receipt)


# ==============================================================================
# ADMIN DEBTS
# ==============================================================================

def list_admin_debts(db: Session, search: Optional[str] = None) -> List[AdminDebt]:
    q = db.query(AdminDebt)
    if search:
        q = q.filter(AdminDebt.person_name.ilike(f"%{search}%"))
    return q.order_by(AdminDebt.is_paid.asc(), AdminDebt.created_at.desc(), AdminDebt.id.desc()).all()


def admin_unpaid_total(debts: List[AdminDebt]) -> Decimal:
    return sum((Decimal(str(d.amount)) for d in debts if not d.is_paid), Decimal("0.00"))


def _check_admin_debt(person_name: Optional[str], amount: Optional[Decimal]) -> None:
    if person_name is not None and not person_name.strip():
        raise ValueError("Person name cannot be empty")
    if amount is not None and amount <= 0:
        raise ValueError("Amount must be positive")


def create_admin_debt(db: Session, data: AdminDebtCreate) -> AdminDebt:
    """Raises ValueError on an empty name or non-positive amount."""
    _check_admin_debt(data.person_name, data.amount)
    debt = AdminDebt(
        person_name=data.person_name.strip(),
        phone_number=data.phone_number,
        amount=data.amount,
        expected_payment_date=data.expected_payment_date,
        notes=data.notes,
        is_paid=False,
    )
    db.add(debt)
    db.commit()
    db.refresh(debt)
    return debt


def update_admin_debt(db: Session, debt: AdminDebt, data: AdminDebtUpdate) -> AdminDebt:
    """Partial update. Flipping is_paid sets or clears paid_at."""
    _check_admin_debt(data.person_name, data.amount)
    if data.person_name is not None:
        debt.person_name = data.person_name.strip()
    if data.phone_number is not None:
        debt.phone_number = data.phone_number
    if data.amount is not None:
        debt.amount = data.amount
    if data.expected_payment_date is not None:
        debt.expected_payment_date = data.expected_payment_date
    if data.notes is not None:
        debt.notes = data.notes
    if data.is_paid is not None and data.is_paid != debt.is_paid:
        debt.is_paid = data.is_paid
        debt.paid_at = datetime.now(timezone.utc) if data.is_paid else None
    db.commit()
    db.refresh(debt)
    return debt
