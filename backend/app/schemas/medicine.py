from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class MedicineCreate(BaseModel):
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    buying_price: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    stock_quantity: int = 0
    low_stock_threshold: Optional[int] = None
    expiry_date: Optional[date] = None


class MedicineUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    buying_price: Optional[Decimal] = None
    selling_price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None
    expiry_date: Optional[date] = None


class MedicineResponse(BaseModel):
    id: int
    pharmacy_id: int
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    buying_price: Decimal
    selling_price: Decimal
    unit_profit: Decimal = Field(default=Decimal("0"))
    stock_quantity: int
    low_stock_threshold: int
    expiry_date: Optional[date] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
