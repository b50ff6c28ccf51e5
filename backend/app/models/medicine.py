from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Date, DateTime, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class Medicine(Base):
    """
    Pharmacy catalog entry and its stock level.

    stock_quantity is only decremented through the conditional update in
    inventory_ledger; the CHECK constraint is the last line against negatives.
    """
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_medicines_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(128), nullable=True)
    description = Column(Text, nullable=True)
    buying_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    expiry_date = Column(Date, nullable=True)
    created_by = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    pharmacy = relationship("Pharmacy", backref="medicines")

    @property
    def unit_profit(self):
        return (self.selling_price or 0) - (self.buying_price or 0)
