"""
Alert scan: low-stock and expiring medicine notifications for one pharmacy.

Triggered from outside (run_alert_scan.py under cron, or POST
/notifications/scan). Each (medicine, type) pair owns at most one
notification; a rescan refreshes its message and countdown. Notifications
are never resolved by the scan, only by confirmation.
"""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.medicine import Medicine
from app.models.notification import Notification, TYPE_EXPIRING, TYPE_LOW_STOCK

logger = logging.getLogger(__name__)


def days_until(expiry: date, today: date) -> int:
    return (expiry - today).days


def _low_stock_message(medicine: Medicine) -> str:
    if medicine.stock_quantity == 0:
        return f"{medicine.name} is out of stock"
    return f"{medicine.name} is low on stock ({medicine.stock_quantity} left, threshold {medicine.low_stock_threshold})"


def _expiring_message(medicine: Medicine, days: int) -> str:
    if days == 0:
        return f"{medicine.name} expires today"
    return f"{medicine.name} expires in {days} day{'s' if days != 1 else ''}"


def _upsert(db: Session, medicine: Medicine, kind: str, message: str, days_remaining: Optional[int]) -> Notification:
    existing = (
        db.query(Notification)
        .filter(Notification.medicine_id == medicine.id, Notification.type == kind)
        .first()
    )
    if existing:
        existing.message = message
        existing.days_remaining = days_remaining
        return existing

    notification = Notification(
        pharmacy_id=medicine.pharmacy_id,
        medicine_id=medicine.id,
        type=kind,
        message=message,
        days_remaining=days_remaining,
        is_confirmed=False,
    )
    db.add(notification)
    return notification


def _scan(db: Session, pharmacy_id: int, today: date) -> List[Notification]:
    window = settings.EXPIRY_ALERT_DAYS
    flagged: List[Notification] = []

    medicines = db.query(Medicine).filter(Medicine.pharmacy_id == pharmacy_id).order_by(Medicine.id).all()
    for medicine in medicines:
        if medicine.stock_quantity <= medicine.low_stock_threshold:
            flagged.append(_upsert(db, medicine, TYPE_LOW_STOCK, _low_stock_message(medicine), None))

        if medicine.expiry_date is not None:
            days = days_until(medicine.expiry_date, today)
            if 0 <= days <= window:
                flagged.append(_upsert(db, medicine, TYPE_EXPIRING, _expiring_message(medicine, days), days))

    db.commit()
    for notification in flagged:
        db.refresh(notification)
    logger.info(f"Alert scan for pharmacy {pharmacy_id}: {len(flagged)} flagged of {len(medicines)} medicines")
    return flagged


def run_alert_scan(db: Session, pharmacy_id: int, today: Optional[date] = None) -> List[Notification]:
    """
    Flag medicines with stock <= threshold (low_stock) or expiring within
    EXPIRY_ALERT_DAYS days (expiring). Returns the flagged notifications.

    A scan running alongside may insert the same (medicine, type) rows first;
    the losing commit is rolled back and the scan repeated, which then updates
    those rows.
    """
    today = today or datetime.now(timezone.utc).date()
    try:
        return _scan(db, pharmacy_id, today)
    except IntegrityError as e:
        db.rollback()
        logger.info(f"Alert scan for pharmacy {pharmacy_id} raced another scan, rescanning: {e.orig}")
        return _scan(db, pharmacy_id, today)


def confirm_notification(db: Session, notification: Notification, staff_id: int) -> Notification:
    if not notification.is_confirmed:
        notification.is_confirmed = True
        notification.confirmed_by = staff_id
        notification.confirmed_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification
