"""
Housekeeping for sale request tokens, run from cron (run_sale_maintenance.py).

STALE ATTEMPTS:
- A process that dies while RESERVING or PERSISTING leaves its token in flight
  with reservations nobody will release. Once untouched for SALE_STALE_MINUTES
  the token is ABORTED with reconciliation_required and reported at CRITICAL.
  Replays then answer ReconciliationRequired instead of SaleInProgress.
- A token stuck in VALIDATING reserved nothing; it is ABORTED as sale_aborted
  and can be retried.

RETENTION:
- Finished tokens older than SALE_REQUEST_RETENTION_DAYS are deleted.
  Tokens waiting for reconciliation are kept until someone resolves them.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.config import settings
from app.core.errors import ReconciliationRequired, SaleAborted
from app.core.tenant import TenantContext
from app.models.sale_request import SaleRequest
from app.models.staff import ROLE_STAFF
from app.services.sale_coordinator import SaleState

logger = logging.getLogger(__name__)

IN_FLIGHT = (SaleState.VALIDATING.value, SaleState.RESERVING.value, SaleState.PERSISTING.value)


def _utcnow() -> datetime:
    # Timestamps are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def sweep_stale_sales(db: Session, now: Optional[datetime] = None) -> List[Tuple[str, str]]:
    """Abort in-flight tokens nobody is working on. Returns (token, state it was stuck in)."""
    cutoff = (now or _utcnow()) - timedelta(minutes=settings.SALE_STALE_MINUTES)
    stale = (
        db.query(SaleRequest.id, SaleRequest.token, SaleRequest.state, SaleRequest.pharmacy_id, SaleRequest.staff_id)
        .filter(SaleRequest.state.in_(IN_FLIGHT), SaleRequest.updated_at < cutoff)
        .order_by(SaleRequest.id)
        .all()
    )

    swept: List[Tuple[str, str]] = []
    for request_id, token, state, pharmacy_id, staff_id in stale:
        holds_stock = state != SaleState.VALIDATING.value
        code = ReconciliationRequired.code if holds_stock else SaleAborted.code
        # Only if the attempt has not moved since it was read
        stmt = (
            update(SaleRequest)
            .where(SaleRequest.id == request_id, SaleRequest.state == state, SaleRequest.updated_at < cutoff)
            .values(state=SaleState.ABORTED.value, error_code=code)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        if result.rowcount != 1:
            continue

        ctx = TenantContext(pharmacy_id=pharmacy_id, staff_id=staff_id, role=ROLE_STAFF)
        if holds_stock:
            logger.critical(f"Sale token={token} abandoned in {state}: stock may still be reserved")
            AuditLog.log_sale(
                "reconciliation_required", token, ctx, error_code=code,
                details={"reason": f"Attempt abandoned in {state}"},
            )
        else:
            logger.warning(f"Sale token={token} abandoned in {state}: aborted, nothing was reserved")
            AuditLog.log_sale("aborted", token, ctx, error_code=code)
        swept.append((token, state))
    return swept


def purge_finished_requests(db: Session, now: Optional[datetime] = None) -> int:
    cutoff = (now or _utcnow()) - timedelta(days=settings.SALE_REQUEST_RETENTION_DAYS)
    deleted = (
        db.query(SaleRequest)
        .filter(
            SaleRequest.updated_at < cutoff,
            or_(
                SaleRequest.state == SaleState.COMMITTED.value,
                and_(
                    SaleRequest.state == SaleState.ABORTED.value,
                    SaleRequest.error_code != ReconciliationRequired.code,
                ),
            ),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Purged {deleted} finished sale request token(s) older than {cutoff:%Y-%m-%d}")
    return deleted
