from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime


class PharmacyCreate(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class PharmacyUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class PharmacyResponse(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StaffCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    role: str = "staff"
    pharmacy_id: Optional[int] = None


class StaffResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    pharmacy_id: Optional[int] = None

    class Config:
        from_attributes = True
