"""
Pricing Schemas

Pydantic models for price overrides, calendars and stay quotes.
"""

from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class PriceOverrideRequest(BaseModel):
    """Body of PUT /units/{unit_id}/prices/{date}; null price clears the override"""
    price: Optional[int] = Field(None, description="Nightly price for the date, or null for the base price")


class PriceRuleResponse(BaseModel):
    """A stored per-date override"""
    date: date
    price: int
    kind: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PriceOverrideResult(BaseModel):
    """Outcome of a set/clear call"""
    unit_id: str
    date: date
    price: int  # Effective price for the date after the write
    is_override: bool
    kind: Optional[str] = None


class CalendarResponse(BaseModel):
    """Schema for a unit's calendar"""
    unit_id: str
    base_price: int
    from_date: date
    to_date: date
    overrides: List[PriceRuleResponse]
    occupied_dates: List[date]


class QuoteRequest(BaseModel):
    """Request for a stay quote"""
    start_date: date
    end_date: date


class QuoteNight(BaseModel):
    """Single night in a quote"""
    date: date
    price: int
    is_override: bool


class QuoteResponse(BaseModel):
    """Response for a stay quote"""
    unit_id: str
    start_date: date
    end_date: date
    num_nights: int
    nights: List[QuoteNight]
    total_price: int
    average_nightly: float
