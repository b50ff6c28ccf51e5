"""Sales: record a sale, browse receipts, open one receipt for printing."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_context
from app.core.exceptions import BusinessError
from app.core.permissions import require_pharmacy, resolve_pharmacy_scope
from app.core.result import Err
from app.core.tenant import TenantContext
from app.schemas.sale import SaleCreate, ReceiptResponse, ReceiptSummary
from app.services.receipt_service import ReceiptFilters, get_receipt, list_receipts
from app.services.sale_coordinator import record_sale

router = APIRouter()


@router.post("/sales", response_model=ReceiptResponse, status_code=201)
def create_sale(
    sale: SaleCreate,
    pharmacy_id: Optional[int] = Query(None, description="Admins: pharmacy to sell in"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Checkout. Stock is deducted only if the receipt is saved."""
    scoped = require_pharmacy(db, ctx, pharmacy_id)
    result = record_sale(db, scoped, sale)
    if isinstance(result, Err):
        raise BusinessError.from_error(result.error)
    receipt = get_receipt(db, scoped, result.value.id)
    return receipt


@router.get("/receipts", response_model=List[ReceiptSummary])
def receipts(
    pharmacy_id: Optional[int] = Query(None),
    payment_method: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    customer: Optional[str] = Query(None, description="Customer name contains"),
    staff_id: Optional[int] = Query(None),
    debt_unpaid: Optional[bool] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Receipt history, newest first."""
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    filters = ReceiptFilters(
        payment_method=payment_method,
        created_from=date_from,
        created_to=date_to,
        customer=customer,
        staff_id=staff_id,
        debt_unpaid=debt_unpaid,
        limit=limit,
    )
    return list_receipts(db, scope, filters)


@router.get("/receipts/{receipt_id}", response_model=ReceiptResponse)
def receipt_detail(
    receipt_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """One receipt with its items, for the confirmation/print view."""
    receipt = get_receipt(db, ctx, receipt_id)
    if not receipt:
        raise BusinessError.not_found("Receipt")
    return receipt
