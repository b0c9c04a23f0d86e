"""
Stay Price Calculator

Computes the price of a candidate stay by walking its nights:

    total = sum(price_for(unit, d) for d in [start, end))

The checkout night is never charged. The average nightly price is for
display only and never feeds a business decision.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.unit import RentableUnit
from .exceptions import InvalidRange
from .price_rules import PriceRuleStore


@dataclass
class NightlyPrice:
    """Price charged for one night"""
    date: date
    price: int
    is_override: bool


@dataclass
class StayQuote:
    """Breakdown of a stay's price"""
    unit_id: str
    start_date: date
    end_date: date
    nights: List[NightlyPrice] = field(default_factory=list)

    @property
    def num_nights(self) -> int:
        return len(self.nights)

    @property
    def total_price(self) -> int:
        return sum(n.price for n in self.nights)

    @property
    def average_nightly(self) -> float:
        if not self.nights:
            return 0.0
        return round(self.total_price / self.num_nights, 2)


def validate_range(start: date, end: date) -> int:
    """Returns the number of nights in [start, end)."""
    if start is None or end is None or end <= start:
        raise InvalidRange(start, end)
    return (end - start).days


class StayPriceCalculator:
    """
    Pricing for multi-night stays.

    Deterministic and side-effect free; O(nights) with a single query for
    the overrides in the range.
    """

    def __init__(self, db: Session, price_rules: Optional[PriceRuleStore] = None):
        self.db = db
        self.price_rules = price_rules or PriceRuleStore(db)

    def quote(self, unit: RentableUnit, start: date, end: date) -> StayQuote:
        validate_range(start, end)
        overrides = self.price_rules.overrides_between(unit, start, end)

        quote = StayQuote(unit_id=unit.id, start_date=start, end_date=end)
        current = start
        while current < end:
            quote.nights.append(NightlyPrice(
                date=current,
                price=overrides.get(current, unit.base_price),
                is_override=current in overrides
            ))
            current += timedelta(days=1)
        return quote

    def total_price(self, unit: RentableUnit, start: date, end: date) -> int:
        """Sum of nightly prices over [start, end). Raises InvalidRange unless end > start."""
        validate_range(start, end)
        return sum(self.price_rules.prices_for_range(unit, start, end).values())
