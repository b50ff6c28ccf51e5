"""Medicine catalog CRUD. Price edits never reach receipts already made."""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_context
from app.core.audit import AuditLog
from app.core.config import settings
from app.core.exceptions import BusinessError
from app.core.permissions import require_pharmacy, resolve_pharmacy_scope
from app.core.tenant import TenantContext
from app.models.medicine import Medicine
from app.schemas.medicine import MedicineCreate, MedicineUpdate, MedicineResponse

router = APIRouter()


def _get_medicine(db: Session, ctx: TenantContext, medicine_id: int) -> Medicine:
    q = db.query(Medicine).filter(Medicine.id == medicine_id)
    if not ctx.is_admin:
        q = q.filter(Medicine.pharmacy_id == ctx.pharmacy_id)
    medicine = q.first()
    if not medicine:
        raise BusinessError.not_found("Medicine")
    return medicine


def _check_values(
    name: Optional[str],
    buying_price: Optional[Decimal],
    selling_price: Optional[Decimal],
    stock_quantity: Optional[int],
    low_stock_threshold: Optional[int],
) -> None:
    if name is not None and not name.strip():
        raise BusinessError.bad_request("Medicine name cannot be empty")
    if buying_price is not None and buying_price < 0:
        raise BusinessError.bad_request("Buying price cannot be negative")
    if selling_price is not None and selling_price < 0:
        raise BusinessError.bad_request("Selling price cannot be negative")
    if stock_quantity is not None and stock_quantity < 0:
        raise BusinessError.bad_request("Stock cannot be negative")
    if low_stock_threshold is not None and low_stock_threshold < 0:
        raise BusinessError.bad_request("Low stock threshold cannot be negative")


@router.get("", response_model=List[MedicineResponse])
def list_medicines(
    pharmacy_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    low_stock: bool = Query(False, description="Only stock at or under threshold"),
    in_stock: bool = Query(False, description="Only sellable medicines"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    q = db.query(Medicine)
    if scope is not None:
        q = q.filter(Medicine.pharmacy_id == scope)
    if search:
        q = q.filter(Medicine.name.ilike(f"%{search}%"))
    if category:
        q = q.filter(Medicine.category == category)
    if low_stock:
        q = q.filter(Medicine.stock_quantity <= Medicine.low_stock_threshold)
    if in_stock:
        q = q.filter(Medicine.stock_quantity > 0)
    return q.order_by(Medicine.name).all()


@router.get("/{medicine_id}", response_model=MedicineResponse)
def get_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return _get_medicine(db, ctx, medicine_id)


@router.post("", response_model=MedicineResponse, status_code=201)
def create_medicine(
    data: MedicineCreate,
    pharmacy_id: Optional[int] = Query(None, description="Admins: owning pharmacy"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    scoped = require_pharmacy(db, ctx, pharmacy_id)
    _check_values(data.name, data.buying_price, data.selling_price, data.stock_quantity, data.low_stock_threshold)

    medicine = Medicine(
        pharmacy_id=scoped.pharmacy_id,
        name=data.name.strip(),
        category=data.category,
        description=data.description,
        buying_price=data.buying_price,
        selling_price=data.selling_price,
        stock_quantity=data.stock_quantity,
        low_stock_threshold=(
            data.low_stock_threshold
            if data.low_stock_threshold is not None
            else settings.DEFAULT_LOW_STOCK_THRESHOLD
        ),
        expiry_date=data.expiry_date,
        created_by=ctx.staff_id,
    )
    db.add(medicine)
    db.commit()
    db.refresh(medicine)
    AuditLog.log_action("create", "medicine", medicine.id, scoped, changes={"name": medicine.name})
    return medicine


@router.patch("/{medicine_id}", response_model=MedicineResponse)
def update_medicine(
    medicine_id: int,
    updates: MedicineUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Catalog edit. Stock set here is a recount, not a sale."""
    medicine = _get_medicine(db, ctx, medicine_id)
    _check_values(
        updates.name, updates.buying_price, updates.selling_price,
        updates.stock_quantity, updates.low_stock_threshold,
    )

    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    for field, value in changes.items():
        setattr(medicine, field, value)
    db.commit()
    db.refresh(medicine)
    AuditLog.log_action("update", "medicine", medicine.id, ctx.for_pharmacy(medicine.pharmacy_id), changes=changes)
    return medicine


@router.delete("/{medicine_id}", response_model=dict)
def delete_medicine(
    medicine_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Refused with 409 once any receipt references the medicine."""
    medicine = _get_medicine(db, ctx, medicine_id)
    name = medicine.name
    pharmacy_id = medicine.pharmacy_id
    db.delete(medicine)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessError.conflict(f"{name} appears on receipts and cannot be deleted")
    AuditLog.log_action("delete", "medicine", medicine_id, ctx.for_pharmacy(pharmacy_id), changes={"name": name})
    return {"message": f"Deleted {name}", "id": medicine_id}
