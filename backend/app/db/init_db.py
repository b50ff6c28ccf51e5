"""Create all tables. Run on app startup.

Creates the first admin account when the staff table is empty, so the
dashboard can be used to create pharmacies and staff.
"""
import logging
import os

from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.models import (  # noqa: F401 - register models
    AdminDebt, Medicine, Notification, Pharmacy, Receipt, ReceiptItem, SaleRequest, Staff,
)
from app.models.staff import ROLE_ADMIN

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(Staff).count() == 0:
            email = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "admin@pharmacy.local")
            admin = Staff(email=email, full_name="Administrator", role=ROLE_ADMIN)
            db.add(admin)
            db.commit()
            db.refresh(admin)
            logger.warning(f"Default admin created: id={admin.id} email={email}. Send X-Staff-Id: {admin.id}")
    finally:
        db.close()
