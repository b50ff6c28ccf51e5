"""
Receipt + ReceiptItem: one sale.

Both are written in a single local transaction by receipt_builder and never
edited afterwards, except the debt settlement columns of a debt receipt.
Item prices are copies taken at sale time, not references to the medicine.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

PAYMENT_CASH = "cash"
PAYMENT_MOBILE_WALLET = "mobile-wallet"
PAYMENT_DEBT = "debt"
PAYMENT_CARD = "card"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MOBILE_WALLET, PAYMENT_DEBT, PAYMENT_CARD)


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    customer_name = Column(String(255), nullable=True)
    payment_method = Column(String(32), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    debt_paid_at = Column(DateTime(timezone=True), nullable=True)
    debt_paid_by = Column(Integer, ForeignKey("staff.id"), nullable=True)

    items = relationship("ReceiptItem", back_populates="receipt", order_by="ReceiptItem.id")
    staff = relationship("Staff", foreign_keys=[staff_id])


class ReceiptItem(Base):
    __tablename__ = "receipt_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_receipt_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    receipt_id = Column(Integer, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    # RESTRICT: a medicine referenced by a sale cannot be deleted
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    buying_price = Column(Numeric(12, 2), nullable=False)
    selling_price = Column(Numeric(12, 2), nullable=False)
    profit = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    receipt = relationship("Receipt", back_populates="items")
    medicine = relationship("Medicine")

    @property
    def medicine_name(self):
        return self.medicine.name if self.medicine else None
