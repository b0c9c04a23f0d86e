from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from enum import Enum

from .pricing import PriceRuleResponse


class ReservationStatusValue(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ReservationCreate(BaseModel):
    unit_id: str = Field(..., min_length=1, max_length=36)
    start_date: date = Field(..., description="Check-in day")
    end_date: date = Field(..., description="Checkout day, not charged")


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatusValue


class ReservationResponse(BaseModel):
    id: str
    unit_id: str
    guest_id: str
    start_date: date
    end_date: date
    status: str
    total_price: int
    nights: int
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ManageViewResponse(BaseModel):
    """Host view of a unit: every override and every active reservation"""
    unit_id: str
    base_price: int
    overrides: List[PriceRuleResponse]
    reservations: List[ReservationResponse]
