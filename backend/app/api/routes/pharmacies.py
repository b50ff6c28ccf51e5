"""Pharmacies and staff accounts. Admin only."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin
from app.core.audit import AuditLog
from app.core.exceptions import BusinessError
from app.core.tenant import TenantContext
from app.models.pharmacy import Pharmacy
from app.models.staff import Staff, ROLES, ROLE_STAFF
from app.schemas.pharmacy import (
    PharmacyCreate,
    PharmacyResponse,
    PharmacyUpdate,
    StaffCreate,
    StaffResponse,
)

router = APIRouter()


def _get_pharmacy(db: Session, pharmacy_id: int) -> Pharmacy:
    pharmacy = db.query(Pharmacy).filter(Pharmacy.id == pharmacy_id).first()
    if not pharmacy:
        raise BusinessError.not_found("Pharmacy")
    return pharmacy


@router.get("", response_model=List[PharmacyResponse])
def list_pharmacies(db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    return db.query(Pharmacy).order_by(Pharmacy.name).all()


@router.post("", response_model=PharmacyResponse, status_code=201)
def create_pharmacy(data: PharmacyCreate, db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    if not data.name.strip():
        raise BusinessError.bad_request("Pharmacy name cannot be empty")
    pharmacy = Pharmacy(name=data.name.strip(), address=data.address, phone=data.phone, email=data.email)
    db.add(pharmacy)
    db.commit()
    db.refresh(pharmacy)
    AuditLog.log_action("create", "pharmacy", pharmacy.id, ctx, changes={"name": pharmacy.name})
    return pharmacy


@router.get("/{pharmacy_id}", response_model=PharmacyResponse)
def get_pharmacy(pharmacy_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    return _get_pharmacy(db, pharmacy_id)


@router.patch("/{pharmacy_id}", response_model=PharmacyResponse)
def update_pharmacy(
    pharmacy_id: int,
    data: PharmacyUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_admin),
):
    pharmacy = _get_pharmacy(db, pharmacy_id)
    if data.name is not None and not data.name.strip():
        raise BusinessError.bad_request("Pharmacy name cannot be empty")
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(pharmacy, field, value.strip() if field == "name" else value)
    db.commit()
    db.refresh(pharmacy)
    AuditLog.log_action("update", "pharmacy", pharmacy.id, ctx, changes=changes)
    return pharmacy


@router.get("/{pharmacy_id}/staff", response_model=List[StaffResponse])
def list_staff(pharmacy_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    _get_pharmacy(db, pharmacy_id)
    return db.query(Staff).filter(Staff.pharmacy_id == pharmacy_id).order_by(Staff.id).all()


@router.post("/staff", response_model=StaffResponse, status_code=201)
def create_staff(data: StaffCreate, db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    """Create an account. Staff must be assigned to a pharmacy; admins are not."""
    if data.role not in ROLES:
        raise BusinessError.bad_request(f"Role must be one of: {', '.join(ROLES)}")
    if data.role == ROLE_STAFF:
        if data.pharmacy_id is None:
            raise BusinessError.bad_request("Staff must be assigned to a pharmacy")
        _get_pharmacy(db, data.pharmacy_id)
    staff = Staff(
        email=data.email,
        full_name=data.full_name,
        role=data.role,
        pharmacy_id=data.pharmacy_id if data.role == ROLE_STAFF else None,
    )
    db.add(staff)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessError.conflict("Email already registered")
    db.refresh(staff)
    AuditLog.log_action("create", "staff", staff.id, ctx, changes={"role": staff.role, "pharmacy_id": staff.pharmacy_id})
    return staff
