"""Stock reservations. Used by the sale coordinator.

Every change is a single-row conditional UPDATE committed on its own, so
concurrent sales of the same medicine are serialized by the database row and
a reservation can never push stock below zero.
"""
import enum
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.medicine import Medicine

logger = logging.getLogger(__name__)


class ReservationOutcome(enum.Enum):
    OK = "ok"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"


def current_stock(db: Session, pharmacy_id: int, medicine_id: int) -> Optional[int]:
    stock = (
        db.query(Medicine.stock_quantity)
        .filter(Medicine.id == medicine_id, Medicine.pharmacy_id == pharmacy_id)
        .scalar()
    )
    return stock


def reserve_stock(db: Session, pharmacy_id: int, medicine_id: int, quantity: int) -> ReservationOutcome:
    """Subtract `quantity` only if at least that much is in stock."""
    stmt = (
        update(Medicine)
        .where(
            Medicine.id == medicine_id,
            Medicine.pharmacy_id == pharmacy_id,
            Medicine.stock_quantity >= quantity,
        )
        .values(stock_quantity=Medicine.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    if result.rowcount == 1:
        logger.info(f"Reserved {quantity} of medicine {medicine_id} (pharmacy {pharmacy_id})")
        return ReservationOutcome.OK

    if current_stock(db, pharmacy_id, medicine_id) is None:
        return ReservationOutcome.NOT_FOUND
    logger.info(f"Reservation refused: medicine {medicine_id} has less than {quantity} in stock")
    return ReservationOutcome.INSUFFICIENT_STOCK


def release_stock(db: Session, pharmacy_id: int, medicine_id: int, quantity: int) -> ReservationOutcome:
    """Give back a reservation taken by reserve_stock."""
    stmt = (
        update(Medicine)
        .where(Medicine.id == medicine_id, Medicine.pharmacy_id == pharmacy_id)
        .values(stock_quantity=Medicine.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    if result.rowcount != 1:
        logger.error(f"Release of {quantity} for medicine {medicine_id} matched no row")
        return ReservationOutcome.NOT_FOUND
    logger.info(f"Released {quantity} of medicine {medicine_id} (pharmacy {pharmacy_id})")
    return ReservationOutcome.OK
