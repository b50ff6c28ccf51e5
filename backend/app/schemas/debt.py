from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from app.schemas.sale import ReceiptSummary


class CustomerDebtList(BaseModel):
    unpaid_total: Decimal
    debts: List[ReceiptSummary]


class AdminDebtCreate(BaseModel):
    person_name: str
    phone_number: Optional[str] = None
    amount: Decimal
    expected_payment_date: Optional[date] = None
    notes: Optional[str] = None


class AdminDebtUpdate(BaseModel):
    person_name: Optional[str] = None
    phone_number: Optional[str] = None
    amount: Optional[Decimal] = None
    expected_payment_date: Optional[date] = None
    notes: Optional[str] = None
    is_paid: Optional[bool] = None


class AdminDebtResponse(BaseModel):
    id: int
    person_name: str
    phone_number: Optional[str] = None
    amount: Decimal
    expected_payment_date: Optional[date] = None
    notes: Optional[str] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminDebtList(BaseModel):
    unpaid_total: Decimal
    debts: List[AdminDebtResponse]
