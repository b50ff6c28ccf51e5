"""
Sale coordinator: records one point-of-sale transaction.

STATE FLOW (persisted on the SaleRequest row for the request token):
    VALIDATING -> RESERVING -> PERSISTING -> COMMITTED
    VALIDATING / RESERVING / PERSISTING -> ABORTED

CONSISTENCY MODEL:
- Stock is reserved item by item with a conditional decrement, in ascending
  medicine id order, each reservation committed on its own.
- Receipt + items are written in one local transaction afterwards.
- There is no transaction spanning both, so every failure after the first
  reservation is compensated by releasing what was reserved (saga).
- A release that fails is never dropped: the attempt ends in
  ReconciliationRequired and is logged at CRITICAL.

IDEMPOTENCY:
- Replaying a committed token returns the original receipt.
- Replaying an unfinished token returns SaleInProgress.
- An aborted token may be retried; nothing from the failed attempt survived.
"""
import enum
import logging
import uuid
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.config import settings
from app.core.errors import (
    InsufficientStock,
    MedicineNotFound,
    ReconciliationRequired,
    SaleAborted,
    SaleCancelled,
    SaleInProgress,
    ValidationFailed,
)
from app.core.result import Err, Ok
from app.core.tenant import TenantContext
from app.models.medicine import Medicine
from app.models.receipt import Receipt, PAYMENT_METHODS
from app.models.sale_request import SaleRequest
from app.schemas.sale import SaleCreate
from app.services import receipt_builder
from app.services.inventory_ledger import (
    ReservationOutcome,
    current_stock,
    release_stock,
    reserve_stock,
)
from app.services.pricing import take_snapshot

logger = logging.getLogger(__name__)


class SaleState(str, enum.Enum):
    COLLECTING = "COLLECTING"
    VALIDATING = "VALIDATING"
    RESERVING = "RESERVING"
    PERSISTING = "PERSISTING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


Reservation = Tuple[int, int]  # (medicine_id, quantity)


def _attempts() -> int:
    return 1 + max(settings.SALE_PERSIST_RETRIES, 0)


# ==============================================================================
# REQUEST TOKEN
# ==============================================================================

def _claim_token(db: Session, ctx: TenantContext, token: str):
    """
    Own the token for this attempt.

    Returns Ok(SaleRequest) when this call may run the sale, Ok(Receipt) for a
    replay of a committed sale, or Err for a token that cannot be run now.
    """
    existing = db.query(SaleRequest).filter(SaleRequest.token == token).first()
    if existing is None:
        record = SaleRequest(
            token=token,
            pharmacy_id=ctx.pharmacy_id,
            staff_id=ctx.staff_id,
            state=SaleState.VALIDATING.value,
        )
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            # Same token inserted concurrently
            db.rollback()
            existing = db.query(SaleRequest).filter(SaleRequest.token == token).first()
            if existing is None:
                raise
            return _replay(db, ctx, existing)
        db.refresh(record)
        return Ok(record)
    return _replay(db, ctx, existing)


def _replay(db: Session, ctx: TenantContext, existing: SaleRequest):
    if existing.pharmacy_id != ctx.pharmacy_id:
        AuditLog.log_access_denied("replay", "sale_request", existing.id, ctx.staff_id, "Token from another pharmacy")
        return Err(ValidationFailed("Request token already used"))

    if existing.state == SaleState.COMMITTED.value:
        logger.info(f"Replay of committed sale token={existing.token} -> receipt {existing.receipt_id}")
        receipt = db.query(Receipt).filter(Receipt.id == existing.receipt_id).first()
        return Ok(receipt)

    if existing.state == SaleState.ABORTED.value:
        if existing.error_code == ReconciliationRequired.code:
            return Err(ReconciliationRequired(unreleased=(), reason="An earlier attempt with this token left stock unreconciled"))
        # Re-arm only if nobody else did it first
        stmt = (
            update(SaleRequest)
            .where(SaleRequest.id == existing.id, SaleRequest.state == SaleState.ABORTED.value)
            .values(state=SaleState.VALIDATING.value, error_code=None, staff_id=ctx.staff_id)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        db.refresh(existing)
        if result.rowcount == 1:
            logger.info(f"Retrying aborted sale token={existing.token}")
            return Ok(existing)

    logger.info(f"Sale token={existing.token} is still {existing.state}")
    return Err(SaleInProgress(existing.token))


def _set_state(db: Session, sale_request: SaleRequest, state: SaleState) -> None:
    sale_request.state = state.value
    db.commit()


# ==============================================================================
# VALIDATING
# ==============================================================================

def _check_shape(request: SaleCreate) -> Optional[ValidationFailed]:
    if not request.payment_method:
        return ValidationFailed("Payment method is required")
    if request.payment_method not in PAYMENT_METHODS:
        return ValidationFailed(
            f"Unknown payment method '{request.payment_method}'. Use one of: {', '.join(PAYMENT_METHODS)}"
        )
    if not request.items:
        return ValidationFailed("Add at least one medicine to the sale")
    for item in request.items:
        if item.quantity <= 0:
            return ValidationFailed(f"Quantity for medicine {item.medicine_id} must be positive")
    return None


def _merge_lines(request: SaleCreate) -> "OrderedDict[int, int]":
    """Repeated medicine ids in one cart become one line."""
    merged: "OrderedDict[int, int]" = OrderedDict()
    for item in request.items:
        merged[item.medicine_id] = merged.get(item.medicine_id, 0) + item.quantity
    return merged


def _validate(db: Session, ctx: TenantContext, request: SaleCreate):
    """Shape checks, optimistic stock pre-check and pricing snapshot in one read."""
    problem = _check_shape(request)
    if problem:
        return Err(problem)

    quantities = _merge_lines(request)
    medicines: Dict[int, Medicine] = {
        m.id: m
        for m in db.query(Medicine)
        .filter(Medicine.pharmacy_id == ctx.pharmacy_id, Medicine.id.in_(list(quantities)))
        .all()
    }

    lines: List[receipt_builder.LineDraft] = []
    for medicine_id, quantity in quantities.items():
        medicine = medicines.get(medicine_id)
        if medicine is None:
            return Err(MedicineNotFound(medicine_id))
        if quantity > medicine.stock_quantity:
            return Err(InsufficientStock(medicine_id, quantity, medicine.stock_quantity, medicine.name))
        lines.append(receipt_builder.LineDraft(medicine_id, quantity, take_snapshot(medicine)))

    try:
        draft = receipt_builder.build_receipt(
            ctx.pharmacy_id, ctx.staff_id, request.customer_name, request.payment_method, lines
        )
    except ValueError as e:
        return Err(ValidationFailed(str(e)))
    return Ok(draft)


# ==============================================================================
# RESERVING / COMPENSATION
# ==============================================================================

def _reserve_all(db: Session, ctx: TenantContext, draft: receipt_builder.ReceiptDraft, reserved: List[Reservation]):
    """Reserve in ascending medicine id order. Appends each success to `reserved`."""
    for line in sorted(draft.lines, key=lambda l: l.medicine_id):
        outcome = reserve_stock(db, ctx.pharmacy_id, line.medicine_id, line.quantity)
        if outcome is ReservationOutcome.OK:
            reserved.append((line.medicine_id, line.quantity))
            continue
        if outcome is ReservationOutcome.NOT_FOUND:
            return Err(MedicineNotFound(line.medicine_id))
        available = current_stock(db, ctx.pharmacy_id, line.medicine_id) or 0
        return Err(InsufficientStock(line.medicine_id, line.quantity, available, line.snapshot.medicine_name))
    return Ok(reserved)


def _compensate(db: Session, ctx: TenantContext, reserved: List[Reservation]) -> List[Reservation]:
    """Release reservations, newest first. Returns the ones that could not be released."""
    unreleased: List[Reservation] = []
    for medicine_id, quantity in reversed(reserved):
        released = False
        for attempt in range(1, _attempts() + 1):
            try:
                released = release_stock(db, ctx.pharmacy_id, medicine_id, quantity) is ReservationOutcome.OK
                break
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Release attempt {attempt} for medicine {medicine_id} failed: {e}")
        if not released:
            unreleased.append((medicine_id, quantity))
    return unreleased


# ==============================================================================
# TERMINAL TRANSITIONS
# ==============================================================================

def _abort(db: Session, ctx: TenantContext, sale_request: SaleRequest, error):
    token = sale_request.token
    try:
        sale_request.state = SaleState.ABORTED.value
        sale_request.error_code = error.code
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not record abort of sale token={token}: {e}", exc_info=True)

    if isinstance(error, ReconciliationRequired):
        logger.critical(f"Sale token={token} needs stock reconciliation: unreleased={list(error.unreleased)} ({error.reason})")
        AuditLog.log_sale(
            "reconciliation_required", token, ctx, error_code=error.code,
            details={"unreleased": [list(r) for r in error.unreleased], "reason": error.reason},
        )
    else:
        logger.info(f"Sale token={token} aborted: {error.code}")
        AuditLog.log_sale("aborted", token, ctx, error_code=error.code)
    return Err(error)


def _compensate_and_abort(db: Session, ctx: TenantContext, sale_request: SaleRequest, reserved: List[Reservation], error, reason: str = ""):
    unreleased = _compensate(db, ctx, reserved)
    if unreleased:
        return _abort(db, ctx, sale_request, ReconciliationRequired(tuple(unreleased), reason or error.code))
    if reserved:
        logger.info(f"Compensated {len(reserved)} reservation(s) for sale token={sale_request.token}")
    return _abort(db, ctx, sale_request, error)


def _committed_receipt(db: Session, request_id: int) -> Optional[Receipt]:
    """Receipt of a sale request that reached COMMITTED, read back from the database."""
    state, receipt_id = (
        db.query(SaleRequest.state, SaleRequest.receipt_id)
        .filter(SaleRequest.id == request_id)
        .one()
    )
    if state != SaleState.COMMITTED.value:
        return None
    return db.get(Receipt, receipt_id)


def _outcome_unknown(ctx: TenantContext, token: str, reserved: List[Reservation], cause: Exception):
    # The receipt commit may or may not have landed: neither release nor retry is safe
    error = ReconciliationRequired(tuple(reserved), f"Persisting outcome unknown: {cause}")
    logger.critical(f"Sale token={token} left in PERSISTING, outcome unknown: {cause}")
    AuditLog.log_sale(
        "reconciliation_required", token, ctx, error_code=error.code,
        details={"unreleased": [list(r) for r in reserved], "reason": error.reason},
    )
    return Err(error)


# ==============================================================================
# ENTRY POINT
# ==============================================================================

def record_sale(
    db: Session,
    ctx: TenantContext,
    request: SaleCreate,
    should_cancel: Optional[Callable[[], bool]] = None,
):
    """
    Record a sale all-or-nothing.

    Args:
        db: Database session
        ctx: Caller; the sale is made in ctx.pharmacy_id by ctx.staff_id
        request: Checkout form
        should_cancel: Polled before reserving and before persisting. Once
            persisting has started the attempt always runs to an end.

    Returns:
        Ok(Receipt) or Err(ValidationFailed | MedicineNotFound | InsufficientStock |
        SaleInProgress | SaleCancelled | SaleAborted | ReconciliationRequired)
    """
    if ctx.pharmacy_id is None:
        return Err(ValidationFailed("Choose a pharmacy to record the sale in"))

    token = request.request_token or uuid.uuid4().hex

    # A new token is validated before anything is written for it
    validated = None
    if db.query(SaleRequest.id).filter(SaleRequest.token == token).first() is None:
        validated = _validate(db, ctx, request)
        if isinstance(validated, Err):
            logger.info(f"Sale token={token} rejected: {validated.error.code}")
            return validated

    claimed = _claim_token(db, ctx, token)
    if isinstance(claimed, Err) or isinstance(claimed.value, Receipt):
        return claimed
    sale_request: SaleRequest = claimed.value
    request_id = sale_request.id
    logger.info(f"Sale token={token} claimed by staff {ctx.staff_id} in pharmacy {ctx.pharmacy_id}")

    # VALIDATING (again only for a re-armed token)
    if validated is None:
        validated = _validate(db, ctx, request)
        if isinstance(validated, Err):
            return _abort(db, ctx, sale_request, validated.error)
    draft: receipt_builder.ReceiptDraft = validated.value

    if should_cancel and should_cancel():
        return _abort(db, ctx, sale_request, SaleCancelled())

    # RESERVING
    reserved: List[Reservation] = []
    try:
        _set_state(db, sale_request, SaleState.RESERVING)
        outcome = _reserve_all(db, ctx, draft, reserved)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Reserving failed for sale token={token}: {e}", exc_info=True)
        return _compensate_and_abort(db, ctx, sale_request, reserved, SaleAborted(str(e)), reason=str(e))
    if isinstance(outcome, Err):
        return _compensate_and_abort(db, ctx, sale_request, reserved, outcome.error)

    if should_cancel and should_cancel():
        return _compensate_and_abort(db, ctx, sale_request, reserved, SaleCancelled())

    # PERSISTING: from here the attempt must end COMMITTED or compensated.
    # The commit inside persist_receipt is the point of no return.
    receipt = None
    last_error: Optional[Exception] = None
    for attempt in range(1, _attempts() + 1):
        permanent = False
        try:
            _set_state(db, sale_request, SaleState.PERSISTING)
            receipt = receipt_builder.persist_receipt(db, draft, sale_request)
            break
        except OperationalError as e:
            db.rollback()
            last_error = e
            logger.warning(f"Persist attempt {attempt}/{_attempts()} for sale token={token} failed: {e}")
        except SQLAlchemyError as e:
            db.rollback()
            last_error = e
            permanent = True
            logger.error(f"Persisting sale token={token} failed permanently: {e}", exc_info=True)

        # The error may have surfaced after the commit went through
        try:
            receipt = _committed_receipt(db, request_id)
        except SQLAlchemyError as e:
            db.rollback()
            return _outcome_unknown(ctx, token, reserved, e)
        if receipt is not None:
            logger.warning(f"Sale token={token} was committed before the error surfaced")
            break
        if permanent:
            break

    if receipt is None:
        return _compensate_and_abort(
            db, ctx, sale_request, reserved, SaleAborted(str(last_error)), reason=str(last_error)
        )

    # COMMITTED
    logger.info(f"Sale token={token} committed as receipt {receipt.id}")
    AuditLog.log_sale(
        "committed", token, ctx, receipt_id=receipt.id,
        details={"total_amount": str(receipt.total_amount), "payment_method": receipt.payment_method},
    )
    return Ok(receipt)
