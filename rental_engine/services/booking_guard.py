"""
Booking Conflict Guard

Entry point for creating reservations. Each attempt runs the same steps:

1. Validate range   - end after start, stay length within the unit's limits
2. Check availability - half-open overlap plus turnover buffer
3. Compute price    - sum of nightly prices, frozen on the reservation
4. Commit           - persist as PENDING

Steps 2-4 run inside the unit write lock so two requests for the same unit
cannot both pass the check before either commits. A failure before step 4
leaves no trace in the store. A commit rejected by the store (exclusion
constraint, lock contention) is reported as Conflict, the same shape as a
conflict found by the check.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.reservation import Reservation, ReservationStatus
from ..models.unit import RentableUnit
from ..utils.db_helpers import unit_write_lock
from ..utils.logging_config import get_logger
from ..utils.metrics import record_booking_rejected, record_reservation_created
from .availability import AvailabilityCalculator
from .exceptions import (
    BookingEngineError,
    Conflict,
    IdempotencyKeyReused,
    InvalidRange,
    InvalidStatusTransition,
    ReservationNotFound,
    StayLengthViolation,
)
from .price_rules import PriceRuleStore
from .stay_pricing import StayPriceCalculator, StayQuote, validate_range
from .unit_service import UnitService, today_for_unit

logger = get_logger(__name__)


ALLOWED_TRANSITIONS = {
    ReservationStatus.PENDING.value: {ReservationStatus.CONFIRMED.value, ReservationStatus.CANCELLED.value},
    ReservationStatus.CONFIRMED.value: {ReservationStatus.CANCELLED.value},
    ReservationStatus.CANCELLED.value: set(),
}


@dataclass
class BookingResult:
    reservation: Reservation
    # False when an earlier request with the same idempotency key already created it
    created: bool


class BookingConflictGuard:

    def __init__(
        self,
        db: Session,
        availability: Optional[AvailabilityCalculator] = None,
        pricing: Optional[StayPriceCalculator] = None
    ):
        self.db = db
        self.availability = availability or AvailabilityCalculator(db)
        self.pricing = pricing or StayPriceCalculator(db, PriceRuleStore(db, self.availability))
        self.units = UnitService(db)

    # ==================
    # Step 1
    # ==================

    def validate_stay(self, unit: RentableUnit, start: date, end: date) -> int:
        """Range and stay-length checks. Returns the number of nights."""
        nights = validate_range(start, end)
        self._check_stay_limits(unit, start, end, nights)
        return nights

    def _check_stay_limits(self, unit: RentableUnit, start: date, end: date, nights: int):
        too_long = unit.max_stay_nights is not None and nights > unit.max_stay_nights
        if nights < unit.min_stay_nights or too_long:
            raise StayLengthViolation(nights, unit.min_stay_nights, unit.max_stay_nights)

        if settings.max_advance_days is not None:
            horizon = today_for_unit(unit) + timedelta(days=settings.max_advance_days)
            if start > horizon:
                raise InvalidRange(
                    start, end,
                    message=f"Stays can be booked at most {settings.max_advance_days} days ahead"
                )

    # ==================
    # Quote (steps 1-3)
    # ==================

    def quote(self, unit_id: str, start: date, end: date) -> StayQuote:
        """
        Price a stay without booking it.

        Fails in exactly the ways book() would, so a successful quote means
        the dates were bookable at the time of the call.
        """
        unit = self.units.get_unit(unit_id)
        try:
            self.validate_stay(unit, start, end)
            self.availability.can_book(unit, start, end).raise_for_outcome()
        except BookingEngineError as e:
            logger.booking_rejected(unit_id, e.code, start.isoformat(), end.isoformat())
            raise
        return self.pricing.quote(unit, start, end)

    # ==================
    # Book (steps 1-4)
    # ==================

    def find_by_idempotency_key(self, unit_id: str, guest_id: str, key: str) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(
            Reservation.unit_id == unit_id,
            Reservation.guest_id == guest_id,
            Reservation.idempotency_key == key
        ).first()

    def _replay(self, existing: Reservation, key: str, start: date, end: date) -> BookingResult:
        # Same key, same guest: only the very same stay counts as a retry
        if (existing.start_date, existing.end_date) != (start, end):
            raise IdempotencyKeyReused(key, existing)
        logger.info(f"Reservation {existing.id} replayed for idempotency key {key}")
        return BookingResult(reservation=existing, created=False)

    def book(
        self,
        unit_id: str,
        start: date,
        end: date,
        guest_id: str,
        idempotency_key: Optional[str] = None
    ) -> BookingResult:
        try:
            nights = validate_range(start, end)

            with unit_write_lock(self.db, unit_id) as unit:
                if idempotency_key:
                    existing = self.find_by_idempotency_key(unit_id, guest_id, idempotency_key)
                    if existing is not None:
                        self.db.rollback()
                        return self._replay(existing, idempotency_key, start, end)

                self._check_stay_limits(unit, start, end, nights)
                self.availability.can_book(unit, start, end).raise_for_outcome()

                total = self.pricing.total_price(unit, start, end)
                reservation = Reservation(
                    unit_id=unit_id,
                    guest_id=guest_id,
                    start_date=start,
                    end_date=end,
                    status=ReservationStatus.PENDING.value,
                    total_price=total,
                    idempotency_key=idempotency_key,
                )
                self.db.add(reservation)
                self.db.commit()

        except IntegrityError as e:
            if idempotency_key:
                existing = self.find_by_idempotency_key(unit_id, guest_id, idempotency_key)
                if existing is not None:
                    return self._replay(existing, idempotency_key, start, end)
            logger.warning(f"Reservation commit for unit {unit_id} rejected by the store: {e.orig}")
            record_booking_rejected(Conflict.code)
            raise Conflict(message="Selected dates were booked by another request")

        except BookingEngineError as e:
            record_booking_rejected(e.code)
            logger.booking_rejected(unit_id, e.code, start.isoformat(), end.isoformat())
            raise

        self.db.refresh(reservation)
        record_reservation_created(reservation.status, reservation.total_price)
        logger.reservation_created(reservation.id, unit_id, reservation.nights, reservation.total_price)
        return BookingResult(reservation=reservation, created=True)

    # ==================
    # Lifecycle
    # ==================

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if reservation is None:
            raise ReservationNotFound(reservation_id)
        return reservation

    def change_status(self, reservation_id: str, new_status: ReservationStatus) -> Reservation:
        """
        PENDING -> CONFIRMED | CANCELLED, CONFIRMED -> CANCELLED.

        Cancelling releases the dates for availability and pricing at once.
        """
        reservation = self.get_reservation(reservation_id)
        target = ReservationStatus(new_status).value

        with unit_write_lock(self.db, reservation.unit_id):
            self.db.refresh(reservation)
            current = reservation.status
            if target == current:
                self.db.rollback()
                return reservation
            if target not in ALLOWED_TRANSITIONS.get(current, set()):
                raise InvalidStatusTransition(current, target)

            reservation.status = target
            self.db.commit()

        self.db.refresh(reservation)
        logger.reservation_status_changed(reservation.id, current, target)
        return reservation
