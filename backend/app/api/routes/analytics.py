"""
Analytics API: profit dashboard data.

Computed from receipt items, so figures use the prices each sale was made at:
- Revenue / cost / profit for today, last 7 days, this month, this year
- Month-by-month breakdown for one year
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_context
from app.core.permissions import resolve_pharmacy_scope
from app.core.tenant import TenantContext
from app.models.medicine import Medicine
from app.models.receipt import Receipt, ReceiptItem

router = APIRouter()

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _utcnow() -> datetime:
    # Timestamps are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _totals(db: Session, pharmacy_id: Optional[int], start: datetime, end: Optional[datetime] = None) -> dict:
    q = db.query(
        func.sum(ReceiptItem.total),
        func.sum(ReceiptItem.buying_price * ReceiptItem.quantity),
        func.sum(ReceiptItem.profit),
    ).join(Receipt, ReceiptItem.receipt_id == Receipt.id).filter(Receipt.created_at >= start)
    if end is not None:
        q = q.filter(Receipt.created_at < end)
    if pharmacy_id is not None:
        q = q.filter(Receipt.pharmacy_id == pharmacy_id)
    revenue, cost, profit = q.one()
    return {
        "revenue": float(revenue or Decimal("0")),
        "cost": float(cost or Decimal("0")),
        "profit": float(profit or Decimal("0")),
    }


@router.get("/summary")
def get_profit_summary(
    pharmacy_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """
    Dashboard cards.
    Returns: {today, week, month, year: {revenue, cost, profit}, receipts, low_stock_count, unpaid_debt}
    """
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    now = _utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    receipts_q = db.query(func.count(Receipt.id))
    low_stock_q = db.query(func.count(Medicine.id)).filter(Medicine.stock_quantity <= Medicine.low_stock_threshold)
    debt_q = db.query(func.sum(Receipt.total_amount)).filter(
        Receipt.payment_method == "debt", Receipt.debt_paid_at.is_(None)
    )
    if scope is not None:
        receipts_q = receipts_q.filter(Receipt.pharmacy_id == scope)
        low_stock_q = low_stock_q.filter(Medicine.pharmacy_id == scope)
        debt_q = debt_q.filter(Receipt.pharmacy_id == scope)

    return {
        "today": _totals(db, scope, start_of_day),
        "week": _totals(db, scope, start_of_day - timedelta(days=6)),
        "month": _totals(db, scope, start_of_day.replace(day=1)),
        "year": _totals(db, scope, start_of_day.replace(month=1, day=1)),
        "receipts": receipts_q.scalar() or 0,
        "low_stock_count": low_stock_q.scalar() or 0,
        "unpaid_debt": float(debt_q.scalar() or Decimal("0")),
    }


@router.get("/monthly")
def get_monthly_profit(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    pharmacy_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """
    Month-by-month line chart.
    Returns: [{month: "Jan", revenue, cost, profit}, ...] (12 entries, zeros included)
    """
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    year = year or _utcnow().year

    data = []
    for index, name in enumerate(MONTHS):
        start = datetime(year, index + 1, 1)
        end = datetime(year + 1, 1, 1) if index == 11 else datetime(year, index + 2, 1)
        data.append({"month": name, **_totals(db, scope, start, end)})
    return data
