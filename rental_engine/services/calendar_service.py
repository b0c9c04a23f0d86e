"""
Calendar View

Read-only composition of the price rule store and the availability
calculator: what a guest-facing calendar needs for a date range, and what
the host sees when managing the unit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.price_rule import PriceRule
from ..models.reservation import Reservation
from ..models.unit import RentableUnit
from .availability import AvailabilityCalculator
from .exceptions import InvalidRange
from .price_rules import PriceRuleStore
from .unit_service import today_for_unit

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_DAYS = 90


@dataclass
class CalendarView:
    unit_id: str
    base_price: int
    from_date: date
    to_date: date
    overrides: List[PriceRule] = field(default_factory=list)
    occupied_dates: List[date] = field(default_factory=list)


@dataclass
class ManageView:
    unit_id: str
    base_price: int
    overrides: List[PriceRule] = field(default_factory=list)
    reservations: List[Reservation] = field(default_factory=list)


class CalendarService:

    def __init__(self, db: Session, availability: Optional[AvailabilityCalculator] = None):
        self.db = db
        self.availability = availability or AvailabilityCalculator(db)
        self.price_rules = PriceRuleStore(db, self.availability)

    def get_calendar(
        self,
        unit: RentableUnit,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        include_past: bool = False
    ) -> CalendarView:
        """
        Overrides and occupied dates for [from_date, to_date], both inclusive.

        Without include_past the range is clipped to start at the unit's
        local today; a range entirely in the past comes back empty.
        """
        today = today_for_unit(unit)
        from_date = from_date or today
        to_date = to_date or from_date + timedelta(days=DEFAULT_CALENDAR_DAYS)

        if to_date < from_date:
            raise InvalidRange(from_date, to_date)
        span = (to_date - from_date).days + 1
        if span > settings.calendar_max_days:
            raise InvalidRange(
                from_date, to_date,
                message=f"Calendar range is limited to {settings.calendar_max_days} days"
            )

        view = CalendarView(
            unit_id=unit.id,
            base_price=unit.base_price,
            from_date=from_date,
            to_date=to_date,
        )

        if not include_past:
            from_date = max(from_date, today)
            if to_date < from_date:
                return view

        view.overrides = self.price_rules.list_overrides(unit, from_date, to_date)
        view.occupied_dates = self.availability.occupied_dates(unit, from_date, to_date)
        return view

    def get_manage_view(self, unit: RentableUnit) -> ManageView:
        """Every override and every active reservation of the unit, ordered by date."""
        reservations = self.availability.active_reservations(unit.id)
        logger.debug(f"Manage view for unit {unit.id}: {len(reservations)} active reservations")
        return ManageView(
            unit_id=unit.id,
            base_price=unit.base_price,
            overrides=self.price_rules.list_overrides(unit),
            reservations=reservations,
        )
