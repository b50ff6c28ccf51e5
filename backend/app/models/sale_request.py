"""
SaleRequest: one row per client request token.

Persists the state of a sale attempt so a replayed token returns the first
outcome instead of selling twice.
State flow: VALIDATING -> RESERVING -> PERSISTING -> COMMITTED, or -> ABORTED.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class SaleRequest(Base):
    __tablename__ = "sale_requests"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    state = Column(String(32), nullable=False, default="VALIDATING")
    receipt_id = Column(Integer, ForeignKey("receipts.id"), nullable=True)
    error_code = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SaleRequest token={self.token} state={self.state}>"
