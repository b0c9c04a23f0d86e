# Services package
from .exceptions import (
    BookingEngineError, InvalidRange, StayLengthViolation, InvalidPrice,
    InvalidWindow, InsufficientBuffer, DateOccupied, Conflict, BufferViolation,
    InvalidStatusTransition, NotFound, UnitNotFound, ReservationNotFound
)
from .time_window import TimeWindow, validate_time_window, parse_time_of_day
from .availability import AvailabilityCalculator, BookingCheck, CheckOutcome
from .price_rules import PriceRuleStore, validate_price
from .stay_pricing import StayPriceCalculator, StayQuote, NightlyPrice
from .unit_service import UnitService, today_for_unit
from .booking_guard import BookingConflictGuard, BookingResult, ALLOWED_TRANSITIONS
from .calendar_service import CalendarService, CalendarView, ManageView

__all__ = [
    "BookingEngineError", "InvalidRange", "StayLengthViolation", "InvalidPrice",
    "InvalidWindow", "InsufficientBuffer", "DateOccupied", "Conflict", "BufferViolation",
    "InvalidStatusTransition", "NotFound", "UnitNotFound", "ReservationNotFound",
    "TimeWindow", "validate_time_window", "parse_time_of_day",
    "AvailabilityCalculator", "BookingCheck", "CheckOutcome",
    "PriceRuleStore", "validate_price",
    "StayPriceCalculator", "StayQuote", "NightlyPrice",
    "UnitService", "today_for_unit",
    "BookingConflictGuard", "BookingResult", "ALLOWED_TRANSITIONS",
    "CalendarService", "CalendarView", "ManageView",
]
