"""Sweep abandoned sale attempts and purge old request tokens. Meant for cron:

    */10 * * * * cd backend && python run_sale_maintenance.py
"""
import logging
import sys

from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.services.sale_maintenance import purge_finished_requests, sweep_stale_sales


def run_maintenance() -> int:
    """Returns how many abandoned attempts need stock reconciliation."""
    init_db()
    db = SessionLocal()
    try:
        swept = sweep_stale_sales(db)
        for token, state in swept:
            print(f"[WARN] Sale token {token} was abandoned in {state}")
        purged = purge_finished_requests(db)
        print(f"[OK] {len(swept)} abandoned attempt(s) swept, {purged} old token(s) purged")
    finally:
        db.close()
    return sum(1 for _, state in swept if state != "VALIDATING")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # Non-zero exit so cron mail flags stock to reconcile
    sys.exit(1 if run_maintenance() else 0)
