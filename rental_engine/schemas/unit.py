from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown time zone: {v}")
    return v


class UnitBase(BaseModel):
    title: str = Field("", max_length=200)
    base_price: int
    # "HH:MM"; validated by the service so a bad pair comes back as INVALID_WINDOW
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    timezone: Optional[str] = None
    min_stay_nights: Optional[int] = None
    max_stay_nights: Optional[int] = None

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        return _check_timezone(v)


class UnitCreate(UnitBase):
    pass


class UnitUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    base_price: Optional[int] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    timezone: Optional[str] = None
    min_stay_nights: Optional[int] = None
    max_stay_nights: Optional[int] = None

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        return _check_timezone(v)


class UnitResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    base_price: int
    check_in_time: str
    check_out_time: str
    cleaning_buffer_hours: int = Field(..., description="Derived from the turnover window")
    timezone: str
    min_stay_nights: int
    max_stay_nights: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
