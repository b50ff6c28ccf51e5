from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    pharmacy_id: int
    medicine_id: int
    medicine_name: Optional[str] = None
    type: str
    message: str
    days_remaining: Optional[int] = None
    is_confirmed: bool
    confirmed_by: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
