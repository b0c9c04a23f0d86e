"""
Price Rule Store

Sparse per-date price overrides for a unit. A date without a rule costs the
unit's base price; absence is the normal case, not an error.

Writes are upserts and are refused on any date a guest occupies (inclusive
of the checkout day). The occupancy check runs inside the unit write lock,
in the same transaction as the write.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.price_rule import PriceRule, PriceKind
from ..models.unit import RentableUnit
from ..utils.db_helpers import unit_write_lock
from ..utils.logging_config import get_logger
from ..utils.metrics import record_price_override
from .availability import AvailabilityCalculator
from .exceptions import InvalidPrice, DateOccupied, Conflict, InvalidRange

logger = get_logger(__name__)


def validate_price(price) -> int:
    """Prices are whole numbers >= 1."""
    if isinstance(price, bool) or not isinstance(price, int) or price < 1:
        raise InvalidPrice(price)
    return price


def kind_for(price: int, base_price: int) -> PriceKind:
    """Label assigned at write time; never recomputed when base_price changes."""
    return PriceKind.BASE if price == base_price else PriceKind.SPECIAL


class PriceRuleStore:
    """Override table for one unit at a time."""

    def __init__(self, db: Session, availability: Optional[AvailabilityCalculator] = None):
        self.db = db
        self.availability = availability or AvailabilityCalculator(db)

    def get_rule(self, unit_id: str, day: date) -> Optional[PriceRule]:
        return self.db.query(PriceRule).filter(
            PriceRule.unit_id == unit_id,
            PriceRule.date == day
        ).first()

    def price_for(self, unit: RentableUnit, day: date) -> int:
        """Override price for the date, else the unit's base price."""
        rule = self.get_rule(unit.id, day)
        return rule.price if rule is not None else unit.base_price

    def overrides_between(self, unit: RentableUnit, start: date, end: date) -> Dict[date, int]:
        """Override prices for dates in [start, end)."""
        rules = self.db.query(PriceRule).filter(
            PriceRule.unit_id == unit.id,
            PriceRule.date >= start,
            PriceRule.date < end
        ).all()
        return {rule.date: rule.price for rule in rules}

    def prices_for_range(self, unit: RentableUnit, start: date, end: date) -> Dict[date, int]:
        """
        Nightly price for every date in [start, end), loaded with one query.

        Equivalent to calling price_for for each date.
        """
        if end < start:
            raise InvalidRange(start, end)
        overrides = self.overrides_between(unit, start, end)
        prices = {}
        current = start
        while current < end:
            prices[current] = overrides.get(current, unit.base_price)
            current += timedelta(days=1)
        return prices

    def list_overrides(
        self,
        unit: RentableUnit,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> List[PriceRule]:
        """Rules ordered by date, optionally limited to [from_date, to_date] inclusive."""
        query = self.db.query(PriceRule).filter(PriceRule.unit_id == unit.id)
        if from_date is not None:
            query = query.filter(PriceRule.date >= from_date)
        if to_date is not None:
            query = query.filter(PriceRule.date <= to_date)
        return query.order_by(PriceRule.date).all()

    def set_price(
        self,
        unit: RentableUnit,
        day: date,
        price: int,
        caller_id: Optional[str] = None
    ) -> PriceRule:
        """
        Create or replace the override for a date.

        Raises:
            InvalidPrice: price < 1
            DateOccupied: an active reservation covers the date
        """
        validate_price(price)

        with unit_write_lock(self.db, unit.id) as locked_unit:
            if self.availability.is_date_occupied(locked_unit, day):
                raise DateOccupied(day)

            kind = kind_for(price, locked_unit.base_price)
            rule = self.get_rule(locked_unit.id, day)
            if rule is not None:
                rule.price = price
                rule.kind = kind.value
            else:
                rule = PriceRule(
                    unit_id=locked_unit.id,
                    date=day,
                    price=price,
                    kind=kind.value,
                    created_by_id=caller_id
                )
                self.db.add(rule)

            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                logger.warning(f"Price rule write for unit {unit.id} on {day} rejected by the store: {e}")
                raise Conflict(message=f"Price for {day} was changed concurrently, try again")

        self.db.refresh(rule)
        record_price_override("set")
        logger.price_override_changed(unit.id, day.isoformat(), price, kind.value)
        return rule

    def clear_price(self, unit: RentableUnit, day: date) -> bool:
        """
        Reset a date to the base price.

        Idempotent: returns False when there was no override to delete.

        Raises:
            DateOccupied: an active reservation covers the date
        """
        with unit_write_lock(self.db, unit.id) as locked_unit:
            if self.availability.is_date_occupied(locked_unit, day):
                raise DateOccupied(day)

            rule = self.get_rule(locked_unit.id, day)
            if rule is None:
                self.db.rollback()
                return False

            self.db.delete(rule)
            self.db.commit()

        record_price_override("clear")
        logger.price_override_changed(unit.id, day.isoformat(), None, None)
        return True
