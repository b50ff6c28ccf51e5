"""Notifications: run the alert scan, list alerts, confirm them."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload

from app.api.deps import get_db, get_tenant_context
from app.core.audit import AuditLog
from app.core.exceptions import BusinessError
from app.core.permissions import require_pharmacy, resolve_pharmacy_scope
from app.core.tenant import TenantContext
from app.models.notification import Notification
from app.schemas.notification import NotificationResponse
from app.services.alert_service import confirm_notification, run_alert_scan

router = APIRouter()


@router.post("/scan", response_model=List[NotificationResponse])
def scan(
    pharmacy_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    """Flag low-stock and expiring medicines now. Safe to repeat."""
    scoped = require_pharmacy(db, ctx, pharmacy_id)
    return run_alert_scan(db, scoped.pharmacy_id)


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    pharmacy_id: Optional[int] = Query(None),
    confirmed: Optional[bool] = Query(None, description="Filter pending (false) / confirmed (true)"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    scope = resolve_pharmacy_scope(db, ctx, pharmacy_id)
    q = db.query(Notification).options(joinedload(Notification.medicine))
    if scope is not None:
        q = q.filter(Notification.pharmacy_id == scope)
    if confirmed is not None:
        q = q.filter(Notification.is_confirmed == confirmed)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


@router.post("/{notification_id}/confirm", response_model=NotificationResponse)
def confirm(
    notification_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    q = db.query(Notification).filter(Notification.id == notification_id)
    if not ctx.is_admin:
        q = q.filter(Notification.pharmacy_id == ctx.pharmacy_id)
    notification = q.first()
    if not notification:
        raise BusinessError.not_found("Notification")
    notification = confirm_notification(db, notification, ctx.staff_id)
    AuditLog.log_action("confirmed", "notification", notification.id, ctx.for_pharmacy(notification.pharmacy_id))
    return notification
