"""FastAPI dependencies: DB session and the caller's TenantContext.

The caller is identified by the X-Staff-Id header; the role and pharmacy come
from the staff row, never from the request.
"""
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.exceptions import BusinessError
from app.core.tenant import TenantContext
from app.db.session import SessionLocal
from app.models.staff import Staff, ROLE_ADMIN


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_tenant_context(
    x_staff_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> TenantContext:
    if x_staff_id is None:
        raise BusinessError.unauthorized("Missing X-Staff-Id")
    staff = db.query(Staff).filter(Staff.id == x_staff_id).first()
    if not staff:
        raise BusinessError.unauthorized(f"Unknown staff id {x_staff_id}")
    if staff.role != ROLE_ADMIN and staff.pharmacy_id is None:
        raise BusinessError.forbidden(f"Staff {staff.id} is not assigned to a pharmacy")
    return TenantContext(pharmacy_id=staff.pharmacy_id, staff_id=staff.id, role=staff.role)


def require_admin(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    if not ctx.is_admin:
        AuditLog.log_access_denied("admin", "route", None, ctx.staff_id, "Admin role required")
        raise BusinessError.forbidden(f"Staff {ctx.staff_id} is not an admin")
    return ctx
