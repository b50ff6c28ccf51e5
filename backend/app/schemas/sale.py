from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class SaleLineCreate(BaseModel):
    medicine_id: int
    quantity: int


class SaleCreate(BaseModel):
    """Checkout form. Shape checks (empty cart, quantities, method) happen in the sale core."""
    customer_name: Optional[str] = None
    payment_method: Optional[str] = None
    items: List[SaleLineCreate] = Field(default_factory=list)
    # Client-generated; resubmitting the same token never sells twice
    request_token: Optional[str] = Field(default=None, max_length=128)


class ReceiptItemResponse(BaseModel):
    id: int
    medicine_id: int
    medicine_name: Optional[str] = None
    quantity: int
    buying_price: Decimal
    selling_price: Decimal
    profit: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class ReceiptResponse(BaseModel):
    id: int
    pharmacy_id: int
    staff_id: int
    customer_name: Optional[str] = None
    payment_method: str
    total_amount: Decimal
    created_at: Optional[datetime] = None
    debt_paid_at: Optional[datetime] = None
    debt_paid_by: Optional[int] = None
    items: List[ReceiptItemResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ReceiptSummary(BaseModel):
    """Receipt row without items, for listings."""
    id: int
    pharmacy_id: int
    staff_id: int
    customer_name: Optional[str] = None
    payment_method: str
    total_amount: Decimal
    created_at: Optional[datetime] = None
    debt_paid_at: Optional[datetime] = None
    debt_paid_by: Optional[int] = None

    class Config:
        from_attributes = True
