"""
Tests for the Booking Conflict Guard

- End-to-end pricing and availability scenario
- Failures leave no reservation behind
- Idempotency keys
- Status lifecycle and release of dates on cancel
- Commit failures reported as Conflict
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from rental_engine.config import settings
from rental_engine.models.reservation import Reservation, ReservationStatus
from rental_engine.services.availability import AvailabilityCalculator
from rental_engine.services.booking_guard import BookingConflictGuard
from rental_engine.services.exceptions import (
    Conflict, BufferViolation, DateOccupied, IdempotencyKeyReused, InvalidRange, StayLengthViolation,
    InvalidStatusTransition, UnitNotFound, ReservationNotFound,
)
from rental_engine.services.price_rules import PriceRuleStore
from rental_engine.services.unit_service import today_for_unit
from rental_engine.utils.metrics import reservations_total, booking_rejections_total


def reservation_count(db, unit):
    return db.query(Reservation).filter(Reservation.unit_id == unit.id).count()


class TestScenario:
    """Base 2000, override on 06-10, confirmed stay 06-08..06-10"""

    @pytest.fixture
    def unit(self, db, make_unit, add_reservation):
        unit = make_unit(base_price=2000, check_in_time="14:00", check_out_time="12:00")
        PriceRuleStore(db).set_price(unit, date(2024, 6, 10), 3000)
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10), status=ReservationStatus.CONFIRMED)
        return unit

    def test_checkout_day_occupied(self, db, unit):
        assert AvailabilityCalculator(db).is_date_occupied(unit, date(2024, 6, 10))

    def test_override_on_occupied_date_refused(self, db, unit):
        with pytest.raises(DateOccupied):
            PriceRuleStore(db).set_price(unit, date(2024, 6, 10), 2500)
        assert PriceRuleStore(db).price_for(unit, date(2024, 6, 10)) == 3000

    def test_quote_before_stay(self, db, unit):
        quote = BookingConflictGuard(db).quote(unit.id, date(2024, 6, 5), date(2024, 6, 8))
        assert quote.total_price == 6000

    def test_same_day_turnover_booking(self, db, unit):
        result = BookingConflictGuard(db).book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-2")

        assert result.created
        assert result.reservation.status == ReservationStatus.PENDING.value
        # 06-10 override + 06-11 base
        assert result.reservation.total_price == 5000

    def test_overlapping_booking_rejected(self, db, unit):
        with pytest.raises(Conflict) as exc_info:
            BookingConflictGuard(db).book(unit.id, date(2024, 6, 9), date(2024, 6, 11), guest_id="guest-2")
        assert exc_info.value.details["reservation_start"] == "2024-06-08"
        assert reservation_count(db, unit) == 1


class TestBook:

    def test_total_frozen_at_booking(self, db, make_unit):
        unit = make_unit(base_price=2000)
        result = BookingConflictGuard(db).book(unit.id, date(2024, 7, 1), date(2024, 7, 3), guest_id="guest-1")

        PriceRuleStore(db).set_price(unit, date(2024, 7, 5), 9000)
        db.refresh(result.reservation)
        assert result.reservation.total_price == 4000

    def test_buffer_violation(self, db, make_unit, add_reservation):
        unit = make_unit(check_in_time="13:30", check_out_time="12:00")
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10))

        with pytest.raises(BufferViolation) as exc_info:
            BookingConflictGuard(db).book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-2")
        assert exc_info.value.details["required_earliest_start"] == "2024-06-11"
        assert reservation_count(db, unit) == 1

    def test_invalid_range(self, db, make_unit):
        unit = make_unit()
        with pytest.raises(InvalidRange):
            BookingConflictGuard(db).book(unit.id, date(2024, 6, 10), date(2024, 6, 10), guest_id="guest-1")
        assert reservation_count(db, unit) == 0

    def test_stay_length_limits(self, db, make_unit):
        unit = make_unit(min_stay_nights=2, max_stay_nights=5)
        guard = BookingConflictGuard(db)

        with pytest.raises(StayLengthViolation):
            guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 11), guest_id="guest-1")
        with pytest.raises(StayLengthViolation):
            guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 16), guest_id="guest-1")
        assert guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1").created

    def test_too_far_ahead(self, db, make_unit, monkeypatch):
        monkeypatch.setattr(settings, "max_advance_days", 730)
        unit = make_unit()
        start = today_for_unit(unit) + timedelta(days=5000)
        with pytest.raises(InvalidRange):
            BookingConflictGuard(db).book(unit.id, start, start + timedelta(days=2), guest_id="guest-1")

    def test_no_limits_by_default(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        far = today_for_unit(unit) + timedelta(days=5000)

        assert guard.book(unit.id, date(2024, 6, 1), date(2024, 7, 16), guest_id="guest-1").reservation.nights == 45
        assert guard.book(unit.id, far, far + timedelta(days=2), guest_id="guest-2").created

    def test_invalid_range_counted_and_nothing_written(self, db, make_unit):
        unit = make_unit()
        rejected_before = booking_rejections_total.get(reason="INVALID_RANGE")

        with pytest.raises(InvalidRange):
            BookingConflictGuard(db).book(unit.id, date(2024, 6, 12), date(2024, 6, 10), guest_id="guest-1")

        assert booking_rejections_total.get(reason="INVALID_RANGE") == rejected_before + 1
        assert reservation_count(db, unit) == 0

    def test_unknown_unit(self, db):
        with pytest.raises(UnitNotFound):
            BookingConflictGuard(db).book("missing", date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1")

    def test_back_to_back_bookings(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1")
        guard.book(unit.id, date(2024, 6, 12), date(2024, 6, 14), guest_id="guest-2")
        guard.book(unit.id, date(2024, 6, 8), date(2024, 6, 10), guest_id="guest-3")
        assert reservation_count(db, unit) == 3

    def test_metrics(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        created_before = reservations_total.get(status="PENDING")
        rejected_before = booking_rejections_total.get(reason="CONFLICT")

        guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1")
        with pytest.raises(Conflict):
            guard.book(unit.id, date(2024, 6, 11), date(2024, 6, 13), guest_id="guest-2")

        assert reservations_total.get(status="PENDING") == created_before + 1
        assert booking_rejections_total.get(reason="CONFLICT") == rejected_before + 1


class TestQuote:

    def test_quote_fails_like_book(self, db, make_unit, add_reservation):
        unit = make_unit()
        add_reservation(unit, date(2024, 6, 8), date(2024, 6, 10))

        with pytest.raises(Conflict):
            BookingConflictGuard(db).quote(unit.id, date(2024, 6, 9), date(2024, 6, 11))

    def test_quote_does_not_book(self, db, make_unit):
        unit = make_unit()
        BookingConflictGuard(db).quote(unit.id, date(2024, 6, 9), date(2024, 6, 11))
        assert reservation_count(db, unit) == 0


class TestIdempotency:

    def test_same_key_returns_same_reservation(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        first = guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1", idempotency_key="abc")
        second = guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1", idempotency_key="abc")

        assert first.created
        assert not second.created
        assert second.reservation.id == first.reservation.id
        assert reservation_count(db, unit) == 1

    def test_different_keys_still_conflict(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1", idempotency_key="abc")

        with pytest.raises(Conflict):
            guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1", idempotency_key="xyz")

    def test_key_is_scoped_to_guest(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        first = guard.book(unit.id, date(2027, 1, 1), date(2027, 1, 3), guest_id="guest-a", idempotency_key="1")
        second = guard.book(unit.id, date(2027, 2, 1), date(2027, 2, 5), guest_id="guest-b", idempotency_key="1")

        assert second.created
        assert second.reservation.id != first.reservation.id
        assert second.reservation.guest_id == "guest-b"
        assert second.reservation.start_date == date(2027, 2, 1)
        assert reservation_count(db, unit) == 2

    def test_key_reused_for_other_dates(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        guard.book(unit.id, date(2027, 1, 1), date(2027, 1, 3), guest_id="guest-a", idempotency_key="1")

        with pytest.raises(IdempotencyKeyReused) as exc_info:
            guard.book(unit.id, date(2027, 2, 1), date(2027, 2, 5), guest_id="guest-a", idempotency_key="1")
        assert exc_info.value.details["reservation_start"] == "2027-01-01"
        assert reservation_count(db, unit) == 1


class TestCommitFailure:

    def test_integrity_error_reported_as_conflict(self, db, make_unit):
        unit = make_unit()
        guard = BookingConflictGuard(db)
        error = IntegrityError("INSERT INTO reservations", {}, Exception("ex_reservations_no_overlap"))

        with patch.object(db, "commit", side_effect=error):
            with pytest.raises(Conflict):
                guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1")

        assert reservation_count(db, unit) == 0


class TestLifecycle:

    @pytest.fixture
    def booking(self, db, make_unit):
        unit = make_unit()
        return BookingConflictGuard(db).book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-1").reservation

    def test_confirm_then_cancel(self, db, booking):
        guard = BookingConflictGuard(db)
        assert guard.change_status(booking.id, ReservationStatus.CONFIRMED).status == "CONFIRMED"
        assert guard.change_status(booking.id, ReservationStatus.CANCELLED).status == "CANCELLED"

    def test_cancelled_is_terminal(self, db, booking):
        guard = BookingConflictGuard(db)
        guard.change_status(booking.id, ReservationStatus.CANCELLED)

        with pytest.raises(InvalidStatusTransition) as exc_info:
            guard.change_status(booking.id, ReservationStatus.CONFIRMED)
        assert exc_info.value.details == {"from": "CANCELLED", "to": "CONFIRMED"}

    def test_confirmed_cannot_go_back_to_pending(self, db, booking):
        guard = BookingConflictGuard(db)
        guard.change_status(booking.id, ReservationStatus.CONFIRMED)
        with pytest.raises(InvalidStatusTransition):
            guard.change_status(booking.id, ReservationStatus.PENDING)

    def test_same_status_is_noop(self, db, booking):
        reservation = BookingConflictGuard(db).change_status(booking.id, ReservationStatus.PENDING)
        assert reservation.status == "PENDING"

    def test_cancel_frees_dates(self, db, booking):
        guard = BookingConflictGuard(db)
        unit = booking.unit
        guard.change_status(booking.id, ReservationStatus.CANCELLED)

        assert not AvailabilityCalculator(db).is_date_occupied(unit, date(2024, 6, 11))
        PriceRuleStore(db).set_price(unit, date(2024, 6, 11), 2500)
        rebooked = guard.book(unit.id, date(2024, 6, 10), date(2024, 6, 12), guest_id="guest-2")
        assert rebooked.reservation.total_price == unit.base_price + 2500

    def test_unknown_reservation(self, db):
        with pytest.raises(ReservationNotFound):
            BookingConflictGuard(db).get_reservation("missing")
