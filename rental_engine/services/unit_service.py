"""
Unit Service

Creates and updates rentable units. The turnover window is validated on
every write and the cleaning buffer is always re-derived from it.
"""

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..config import settings
from ..models.unit import RentableUnit
from ..utils.db_helpers import unit_write_lock
from .exceptions import UnitNotFound, InvalidRange
from .price_rules import validate_price
from .time_window import validate_time_window

logger = logging.getLogger(__name__)


def today_for_unit(unit: RentableUnit, now: Optional[datetime] = None) -> date:
    """Current calendar date in the unit's reference time zone."""
    tz = ZoneInfo(unit.timezone or settings.default_timezone)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now.astimezone(tz).date()


def _pick(value, fallback):
    return fallback if value is None else value


def _validate_stay_limits(min_nights: int, max_nights: Optional[int]):
    # max_nights None means unbounded
    if min_nights < 1 or (max_nights is not None and max_nights < min_nights):
        raise InvalidRange(
            None, None,
            message=f"Stay limits must satisfy 1 <= min ({min_nights}) <= max ({max_nights})"
        )


class UnitService:

    def __init__(self, db: Session):
        self.db = db

    def get_unit(self, unit_id: str) -> RentableUnit:
        unit = self.db.query(RentableUnit).filter(RentableUnit.id == unit_id).first()
        if unit is None:
            raise UnitNotFound(unit_id)
        return unit

    def create_unit(
        self,
        owner_id: str,
        base_price: int,
        title: str = "",
        check_in_time: Optional[str] = None,
        check_out_time: Optional[str] = None,
        timezone: Optional[str] = None,
        min_stay_nights: Optional[int] = None,
        max_stay_nights: Optional[int] = None
    ) -> RentableUnit:
        validate_price(base_price)
        window = validate_time_window(
            check_in_time or settings.default_check_in_time,
            check_out_time or settings.default_check_out_time
        )
        min_nights = _pick(min_stay_nights, settings.default_min_stay_nights)
        max_nights = _pick(max_stay_nights, settings.default_max_stay_nights)
        _validate_stay_limits(min_nights, max_nights)

        check_in, check_out = window.as_strings()
        unit = RentableUnit(
            owner_id=owner_id,
            title=title,
            base_price=base_price,
            check_in_time=check_in,
            check_out_time=check_out,
            cleaning_buffer_hours=window.cleaning_buffer_hours,
            timezone=timezone or settings.default_timezone,
            min_stay_nights=min_nights,
            max_stay_nights=max_nights,
        )
        self.db.add(unit)
        self.db.commit()
        self.db.refresh(unit)

        logger.info(f"Unit {unit.id} created (base {base_price}, buffer {window.cleaning_buffer_hours}h)")
        return unit

    def update_unit(self, unit_id: str, **changes) -> RentableUnit:
        """
        Apply a partial update.

        Changing base_price does not touch existing price rules; their kind
        stays whatever it was when they were written.
        """
        with unit_write_lock(self.db, unit_id) as unit:
            if changes.get("base_price") is not None:
                unit.base_price = validate_price(changes["base_price"])

            if changes.get("check_in_time") is not None or changes.get("check_out_time") is not None:
                window = validate_time_window(
                    changes.get("check_in_time") or unit.check_in_time,
                    changes.get("check_out_time") or unit.check_out_time
                )
                unit.check_in_time, unit.check_out_time = window.as_strings()
                unit.cleaning_buffer_hours = window.cleaning_buffer_hours

            if changes.get("min_stay_nights") is not None or changes.get("max_stay_nights") is not None:
                min_nights = _pick(changes.get("min_stay_nights"), unit.min_stay_nights)
                max_nights = _pick(changes.get("max_stay_nights"), unit.max_stay_nights)
                _validate_stay_limits(min_nights, max_nights)
                unit.min_stay_nights = min_nights
                unit.max_stay_nights = max_nights

            for key in ("title", "timezone"):
                if changes.get(key) is not None:
                    setattr(unit, key, changes[key])

            self.db.commit()

        self.db.refresh(unit)
        logger.info(f"Unit {unit_id} updated: {sorted(k for k, v in changes.items() if v is not None)}")
        return unit
