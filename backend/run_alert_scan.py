"""Run the stock alert scan once for every pharmacy. Meant for cron:

    */30 * * * * cd backend && python run_alert_scan.py
"""
import logging
import sys

from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.models.pharmacy import Pharmacy
from app.services.alert_service import run_alert_scan


def scan_all() -> int:
    init_db()
    db = SessionLocal()
    flagged = 0
    try:
        for pharmacy in db.query(Pharmacy).order_by(Pharmacy.id).all():
            notifications = run_alert_scan(db, pharmacy.id)
            flagged += len(notifications)
            print(f"[OK] {pharmacy.name}: {len(notifications)} alert(s)")
    finally:
        db.close()
    return flagged


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    total = scan_all()
    print(f"Alert scan finished: {total} alert(s) flagged")
    sys.exit(0)
