"""AdminDebt: money the owner is owed outside of receipts. Manually entered."""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, Text
from sqlalchemy.sql import func
from app.db.base import Base


class AdminDebt(Base):
    __tablename__ = "admin_debts"

    id = Column(Integer, primary_key=True, index=True)
    person_name = Column(String(255), nullable=False)
    phone_number = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    expected_payment_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
