"""Debts: customer debt receipts and the admin's own debt book."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_context, require_admin
from app.core.audit import AuditLog
from app.core.exceptions import BusinessError
from app.core.permissions import resolve_pharmacy_scope
from app.core.result import Err
from app.core.tenant import TenantContext
from app.models.admin_debt import AdminDebt
from app.schemas.debt import (
    AdminDebtCreate,
    AdminDebtList,
    AdminDebtResponse,
    AdminDebtUpdate,
    CustomerDebtList,
)
from app.schemas.sale import ReceiptSummary
from app.services import debt_service

router = APIRouter()


@router.get("/customers", response_model=CustomerDebtList)
def unpaid_customer_debts(
    pharmacy_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Unpaid debt receipts and their total."""
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    receipts = debt_service.list_unpaid_debts(db, scope)
    return {"unpaid_total": debt_service.unpaid_total(receipts), "debts": receipts}


@router.post("/customers/{receipt_id}/pay", response_model=ReceiptSummary)
def mark_customer_debt_paid(
    receipt_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    result = debt_service.mark_debt_paid(db, ctx, receipt_id)
    if isinstance(result, Err):
        raise BusinessError.from_error(result.error)
    receipt = result.value
    AuditLog.log_action("paid", "debt", receipt.id, ctx.for_pharmacy(receipt.pharmacy_id))
    return receipt


# ==============================================================================
# ADMIN DEBTS
# ==============================================================================

def _get_admin_debt(db: Session, debt_id: int) -> AdminDebt:
    debt = db.query(AdminDebt).filter(AdminDebt.id == debt_id).first()
    if not debt:
        raise BusinessError.not_found("Debt")
    return debt


@router.get("/admin", response_model=AdminDebtList)
def list_admin_debts(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_admin),
):
    debts = debt_service.list_admin_debts(db, search)
    return {"unpaid_total": debt_service.admin_unpaid_total(debts), "debts": debts}


@router.post("/admin", response_model=AdminDebtResponse, status_code=201)
def create_admin_debt(
    data: AdminDebtCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_admin),
):
    try:
        debt = debt_service.create_admin_debt(db, data)
    except ValueError as e:
        raise BusinessError.bad_request(str(e))
    AuditLog.log_action("create", "admin_debt", debt.id, ctx, changes={"person_name": debt.person_name, "amount": debt.amount})
    return debt


@router.patch("/admin/{debt_id}", response_model=AdminDebtResponse)
def update_admin_debt(
    debt_id: int,
    data: AdminDebtUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_admin),
):
    debt = _get_admin_debt(db, debt_id)
    try:
        debt = debt_service.update_admin_debt(db, debt, data)
    except ValueError as e:
        raise BusinessError.bad_request(str(e))
    AuditLog.log_action("update", "admin_debt", debt.id, ctx, changes=data.model_dump(exclude_unset=True))
    return debt


@router.delete("/admin/{debt_id}", response_model=dict)
def delete_admin_debt(
    debt_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_admin),
):
    debt = _get_admin_debt(db, debt_id)
    db.delete(debt)
    db.commit()
    AuditLog.log_action("delete", "admin_debt", debt_id, ctx)
    return {"message": "Debt deleted", "id": debt_id}
