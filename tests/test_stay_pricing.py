"""
Tests for stay pricing

- total = sum of nightly prices over [start, end)
- checkout night not charged
- additivity across a split point
"""

from datetime import date, timedelta

import pytest

from rental_engine.services.exceptions import InvalidRange
from rental_engine.services.price_rules import PriceRuleStore
from rental_engine.services.stay_pricing import StayPriceCalculator, validate_range


@pytest.fixture
def priced_unit(db, make_unit):
    unit = make_unit(base_price=2000)
    store = PriceRuleStore(db)
    store.set_price(unit, date(2024, 6, 10), 3000)
    store.set_price(unit, date(2024, 6, 12), 1500)
    return unit


class TestValidateRange:

    def test_nights(self):
        assert validate_range(date(2024, 6, 5), date(2024, 6, 8)) == 3

    @pytest.mark.parametrize("start,end", [
        (date(2024, 6, 8), date(2024, 6, 8)),
        (date(2024, 6, 8), date(2024, 6, 5)),
        (None, date(2024, 6, 5)),
    ])
    def test_invalid(self, start, end):
        with pytest.raises(InvalidRange):
            validate_range(start, end)


class TestTotalPrice:

    def test_base_only(self, db, priced_unit):
        total = StayPriceCalculator(db).total_price(priced_unit, date(2024, 6, 5), date(2024, 6, 8))
        assert total == 6000

    def test_with_overrides(self, db, priced_unit):
        # 06-09 base, 06-10 3000, 06-11 base, 06-12 1500
        total = StayPriceCalculator(db).total_price(priced_unit, date(2024, 6, 9), date(2024, 6, 13))
        assert total == 2000 + 3000 + 2000 + 1500

    def test_checkout_night_not_charged(self, db, priced_unit):
        total = StayPriceCalculator(db).total_price(priced_unit, date(2024, 6, 9), date(2024, 6, 10))
        assert total == 2000

    def test_equals_sum_of_price_for(self, db, priced_unit):
        store = PriceRuleStore(db)
        calculator = StayPriceCalculator(db, store)
        start, end = date(2024, 6, 1), date(2024, 6, 20)

        expected = sum(store.price_for(priced_unit, start + timedelta(days=i)) for i in range((end - start).days))
        assert calculator.total_price(priced_unit, start, end) == expected

    def test_additive(self, db, priced_unit):
        calculator = StayPriceCalculator(db)
        start, end = date(2024, 6, 7), date(2024, 6, 15)
        whole = calculator.total_price(priced_unit, start, end)

        for split in range(1, (end - start).days):
            mid = start + timedelta(days=split)
            assert whole == (
                calculator.total_price(priced_unit, start, mid) + calculator.total_price(priced_unit, mid, end)
            )

    def test_empty_range_rejected(self, db, priced_unit):
        with pytest.raises(InvalidRange):
            StayPriceCalculator(db).total_price(priced_unit, date(2024, 6, 9), date(2024, 6, 9))


class TestQuote:

    def test_breakdown(self, db, priced_unit):
        quote = StayPriceCalculator(db).quote(priced_unit, date(2024, 6, 9), date(2024, 6, 11))

        assert quote.num_nights == 2
        assert [(n.date, n.price, n.is_override) for n in quote.nights] == [
            (date(2024, 6, 9), 2000, False),
            (date(2024, 6, 10), 3000, True),
        ]
        assert quote.total_price == 5000
        assert quote.average_nightly == 2500.0

    def test_quote_matches_total(self, db, priced_unit):
        calculator = StayPriceCalculator(db)
        start, end = date(2024, 6, 8), date(2024, 6, 14)
        assert calculator.quote(priced_unit, start, end).total_price == calculator.total_price(priced_unit, start, end)
