from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

TYPE_EXPIRING = "expiring"
TYPE_LOW_STOCK = "low_stock"


class Notification(Base):
    """
    Stock alert produced by the alert scan.

    At most one row per (medicine, type): repeated scans update it in place.
    Only an explicit confirmation resolves it.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("medicine_id", "type", name="uq_notifications_medicine_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)  # expiring | low_stock
    message = Column(String(512), nullable=False)
    days_remaining = Column(Integer, nullable=True)
    is_confirmed = Column(Boolean, nullable=False, default=False)
    confirmed_by = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    medicine = relationship("Medicine")

    @property
    def medicine_name(self):
        return self.medicine.name if self.medicine else None
