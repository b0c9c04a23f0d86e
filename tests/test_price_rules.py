"""
Tests for per-date price overrides

- price_for falls back to base_price
- set / clear round trip and upsert
- Writes refused on occupied dates (checkout day included)
- kind is fixed when the rule is written
"""

from datetime import date, timedelta

import pytest

from rental_engine.models.price_rule import PriceRule, PriceKind
from rental_engine.models.reservation import ReservationStatus
from rental_engine.services.exceptions import InvalidPrice, DateOccupied
from rental_engine.services.price_rules import PriceRuleStore, validate_price, kind_for
from rental_engine.services.unit_service import UnitService
from rental_engine.utils.metrics import price_override_writes_total

DAY = date(2024, 6, 10)


class TestValidatePrice:

    @pytest.mark.parametrize("price", [0, -1, -2000, 1.5, "3000", None, True])
    def test_rejects(self, price):
        with pytest.raises(InvalidPrice):
            validate_price(price)

    def test_accepts_positive_int(self):
        assert validate_price(1) == 1
        assert validate_price(3000) == 3000

    def test_kind_for(self):
        assert kind_for(2000, 2000) == PriceKind.BASE
        assert kind_for(2500, 2000) == PriceKind.SPECIAL


class TestPriceFor:

    def test_base_price_without_override(self, db, make_unit):
        unit = make_unit(base_price=2000)
        assert PriceRuleStore(db).price_for(unit, DAY) == 2000

    def test_override_wins(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 3000)

        assert store.price_for(unit, DAY) == 3000
        assert store.price_for(unit, DAY + timedelta(days=1)) == 2000

    def test_clear_restores_base(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 3000)

        assert store.clear_price(unit, DAY) is True
        assert store.price_for(unit, DAY) == 2000

    def test_clear_without_override_is_noop(self, db, make_unit):
        unit = make_unit()
        assert PriceRuleStore(db).clear_price(unit, DAY) is False

    def test_prices_for_range_matches_price_for(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 3000)
        store.set_price(unit, DAY + timedelta(days=2), 1500)

        start, end = DAY - timedelta(days=2), DAY + timedelta(days=5)
        prices = store.prices_for_range(unit, start, end)

        assert list(prices) == [start + timedelta(days=i) for i in range(7)]
        for day, price in prices.items():
            assert price == store.price_for(unit, day)


class TestSetPrice:

    def test_upsert_keeps_single_rule(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 3000)
        store.set_price(unit, DAY, 3500)

        rules = db.query(PriceRule).filter(PriceRule.unit_id == unit.id).all()
        assert len(rules) == 1
        assert rules[0].price == 3500

    def test_invalid_price_rejected(self, db, make_unit):
        unit = make_unit()
        with pytest.raises(InvalidPrice):
            PriceRuleStore(db).set_price(unit, DAY, 0)

    def test_records_caller(self, db, make_unit):
        unit = make_unit()
        rule = PriceRuleStore(db).set_price(unit, DAY, 2500, caller_id="host-1")
        assert rule.created_by_id == "host-1"

    def test_kind_assigned_at_write_time(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        same = store.set_price(unit, DAY, 2000)
        special = store.set_price(unit, DAY + timedelta(days=1), 2500)

        assert same.kind == PriceKind.BASE.value
        assert special.kind == PriceKind.SPECIAL.value

    def test_kind_not_recomputed_when_base_changes(self, db, make_unit):
        unit = make_unit(base_price=2000)
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 2000)

        UnitService(db).update_unit(unit.id, base_price=2500)

        rule = store.get_rule(unit.id, DAY)
        assert rule.kind == PriceKind.BASE.value
        assert rule.price == 2000

    def test_metrics_recorded(self, db, make_unit):
        unit = make_unit()
        before = price_override_writes_total.get(action="set")
        PriceRuleStore(db).set_price(unit, DAY, 2500)
        assert price_override_writes_total.get(action="set") == before + 1


class TestOccupiedDates:

    @pytest.mark.parametrize("status", [ReservationStatus.PENDING, ReservationStatus.CONFIRMED])
    def test_every_covered_date_refused(self, db, make_unit, add_reservation, status):
        unit = make_unit()
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10), status=status)
        store = PriceRuleStore(db)

        for day in (date(2024, 6, 8), date(2024, 6, 9), date(2024, 6, 10)):
            with pytest.raises(DateOccupied):
                store.set_price(unit, day, 2500)
            with pytest.raises(DateOccupied):
                store.clear_price(unit, day)

    def test_dates_around_stay_allowed(self, db, make_unit, add_reservation):
        unit = make_unit()
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10))
        store = PriceRuleStore(db)

        store.set_price(unit, date(2024, 6, 7), 2500)
        store.set_price(unit, date(2024, 6, 11), 2500)

    def test_cancelled_stay_releases_dates(self, db, make_unit, add_reservation):
        unit = make_unit()
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10), status=ReservationStatus.CANCELLED)
        rule = PriceRuleStore(db).set_price(unit, date(2024, 6, 9), 2500)
        assert rule.price == 2500

    def test_refused_write_leaves_rule_untouched(self, db, make_unit, add_reservation):
        unit = make_unit()
        store = PriceRuleStore(db)
        store.set_price(unit, DAY, 3000)
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10))

        with pytest.raises(DateOccupied):
            store.set_price(unit, DAY, 2500)
        assert store.price_for(unit, DAY) == 3000

    def test_error_payload(self, db, make_unit, add_reservation):
        unit = make_unit()
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10))

        with pytest.raises(DateOccupied) as exc_info:
            PriceRuleStore(db).set_price(unit, DAY, 2500)
        assert exc_info.value.status_code == 409
        assert exc_info.value.to_dict() == {
            "detail": exc_info.value.message,
            "code": "DATE_OCCUPIED",
            "date": "2024-06-10",
        }
