"""
Availability Calculator

Answers "is this date taken?" and "can this stay be booked?" for a unit,
from its active (PENDING / CONFIRMED) reservations.

Two date conventions are used on purpose and kept apart:

- Occupied date (display, inclusive): a reservation [start, end) occupies
  every date start <= d <= end. The checkout day counts as occupied because
  the guest is still there until check-out time.
- Overlap (booking, half-open): a new [s2, e2) conflicts with an existing
  [s1, e1) iff s2 < e1 and s1 < e2. A stay starting on another stay's
  checkout day is not an overlap; the turnover buffer decides it.

Turnover buffer:

    datetime(new_start, check_in) >= datetime(previous_end, check_out) + buffer

and symmetrically for the stay that follows the candidate. Every reservation
within reach of the buffer is considered and the true nearest neighbour on
each side is used; the input order of reservations does not matter.
"""

import enum
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.reservation import Reservation, ACTIVE_STATUSES
from ..models.unit import RentableUnit
from .exceptions import InvalidRange, Conflict, BufferViolation
from .time_window import TimeWindow

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class CheckOutcome(str, enum.Enum):
    OK = "OK"
    CONFLICT = "CONFLICT"
    BUFFER_VIOLATION = "BUFFER_VIOLATION"


@dataclass(frozen=True)
class BookingCheck:
    """
    Result of an availability check.

    reservation is the occupying reservation for CONFLICT, or the
    neighbour whose buffer is violated for BUFFER_VIOLATION.
    """
    outcome: CheckOutcome
    reservation: Optional[object] = None
    required_earliest_start: Optional[date] = None
    latest_end: Optional[date] = None
    buffer_hours: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome == CheckOutcome.OK

    def raise_for_outcome(self) -> None:
        """Turn a negative result into the matching error."""
        if self.outcome == CheckOutcome.CONFLICT:
            raise Conflict(self.reservation)
        if self.outcome == CheckOutcome.BUFFER_VIOLATION:
            raise BufferViolation(
                required_earliest_start=self.required_earliest_start,
                latest_end=self.latest_end,
                buffer_hours=self.buffer_hours,
            )


BOOKABLE = BookingCheck(outcome=CheckOutcome.OK)


# ==================
# Pure rules
# ==================

def overlaps(s1: date, e1: date, s2: date, e2: date) -> bool:
    """Half-open interval intersection of [s1, e1) and [s2, e2)."""
    return s2 < e1 and s1 < e2


def covers(reservation, target: date) -> bool:
    """Inclusive occupancy: start <= target <= end."""
    return reservation.start_date <= target <= reservation.end_date


def is_active(reservation) -> bool:
    return reservation.status in ACTIVE_STATUSES


def active_only(reservations: Iterable) -> List:
    return [r for r in reservations if is_active(r)]


def window_for_unit(unit: RentableUnit) -> TimeWindow:
    return TimeWindow(
        check_in_time=unit.check_in,
        check_out_time=unit.check_out,
        cleaning_buffer_hours=unit.cleaning_buffer_hours,
    )


def buffer_reach(window: TimeWindow) -> timedelta:
    """How many days around a candidate stay a neighbour's buffer can reach."""
    return timedelta(days=math.ceil(window.cleaning_buffer_hours / 24) + 1)


def earliest_start_after(ready_at: datetime, window: TimeWindow) -> date:
    """First date whose check-in time is at or after ready_at."""
    candidate = ready_at.date()
    while datetime.combine(candidate, window.check_in_time) < ready_at:
        candidate += ONE_DAY
    return candidate


def latest_end_before(next_start: date, window: TimeWindow) -> date:
    """Last checkout date whose buffer clears before the check-in on next_start."""
    buffer = timedelta(hours=window.cleaning_buffer_hours)
    deadline = datetime.combine(next_start, window.check_in_time)
    candidate = next_start
    while datetime.combine(candidate, window.check_out_time) + buffer > deadline:
        candidate -= ONE_DAY
    return candidate


def is_date_occupied_by(reservations: Iterable, target: date) -> bool:
    return any(covers(r, target) for r in active_only(reservations))


def occupied_dates_for(reservations: Iterable, range_start: date, range_end: date) -> List[date]:
    """
    Dates in [range_start, range_end] (both inclusive) held by an active
    reservation, sorted and without duplicates.
    """
    if range_end < range_start:
        raise InvalidRange(range_start, range_end, message=f"Range end {range_end} is before start {range_start}")

    taken = set()
    for reservation in active_only(reservations):
        current = max(reservation.start_date, range_start)
        last = min(reservation.end_date, range_end)
        while current <= last:
            taken.add(current)
            current += ONE_DAY
    return sorted(taken)


def check_booking(
    reservations: Iterable,
    start: date,
    end: date,
    window: TimeWindow,
    exclude_reservation_id: Optional[str] = None
) -> BookingCheck:
    """
    Decide whether [start, end) can be booked against the given reservations.

    Overlap wins over buffer: a stay that intersects another one is reported
    as CONFLICT even if it would also break a buffer.
    """
    if end <= start:
        raise InvalidRange(start, end)

    active = sorted(
        (r for r in active_only(reservations)
         if exclude_reservation_id is None or r.id != exclude_reservation_id),
        key=lambda r: (r.start_date, r.end_date)
    )

    for reservation in active:
        if overlaps(reservation.start_date, reservation.end_date, start, end):
            return BookingCheck(outcome=CheckOutcome.CONFLICT, reservation=reservation)

    buffer = timedelta(hours=window.cleaning_buffer_hours)
    reach = buffer_reach(window)

    # Nearest stay that ends on or before the candidate starts
    preceding = [r for r in active if start - reach <= r.end_date <= start]
    if preceding:
        previous = max(preceding, key=lambda r: r.end_date)
        ready_at = datetime.combine(previous.end_date, window.check_out_time) + buffer
        if datetime.combine(start, window.check_in_time) < ready_at:
            return BookingCheck(
                outcome=CheckOutcome.BUFFER_VIOLATION,
                reservation=previous,
                required_earliest_start=earliest_start_after(ready_at, window),
                buffer_hours=window.cleaning_buffer_hours,
            )

    # Nearest stay that starts on or after the candidate ends
    following = [r for r in active if end <= r.start_date <= end + reach]
    if following:
        upcoming = min(following, key=lambda r: r.start_date)
        candidate_ready = datetime.combine(end, window.check_out_time) + buffer
        if datetime.combine(upcoming.start_date, window.check_in_time) < candidate_ready:
            return BookingCheck(
                outcome=CheckOutcome.BUFFER_VIOLATION,
                reservation=upcoming,
                latest_end=latest_end_before(upcoming.start_date, window),
                buffer_hours=window.cleaning_buffer_hours,
            )

    return BOOKABLE


# ==================
# Store-backed service
# ==================

class AvailabilityCalculator:
    """
    Loads a unit's active reservations and applies the rules above.

    Callers that go on to write (BookingConflictGuard, PriceRuleStore) must
    run these checks inside the unit write lock.
    """

    def __init__(self, db: Session):
        self.db = db

    def active_reservations(
        self,
        unit_id: str,
        window_start: Optional[date] = None,
        window_end: Optional[date] = None
    ) -> List[Reservation]:
        """Active reservations touching [window_start, window_end] (inclusive)."""
        query = self.db.query(Reservation).filter(
            Reservation.unit_id == unit_id,
            Reservation.status.in_(ACTIVE_STATUSES)
        )
        if window_end is not None:
            query = query.filter(Reservation.start_date <= window_end)
        if window_start is not None:
            query = query.filter(Reservation.end_date >= window_start)
        return query.order_by(Reservation.start_date, Reservation.end_date).all()

    def occupying_reservation(self, unit: RentableUnit, target: date) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(
            Reservation.unit_id == unit.id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.start_date <= target,
            Reservation.end_date >= target
        ).order_by(Reservation.start_date).first()

    def is_date_occupied(self, unit: RentableUnit, target: date) -> bool:
        """Inclusive semantics: the checkout day of a stay is occupied."""
        return self.occupying_reservation(unit, target) is not None

    def occupied_dates(self, unit: RentableUnit, range_start: date, range_end: date) -> List[date]:
        if range_end < range_start:
            raise InvalidRange(range_start, range_end, message=f"Range end {range_end} is before start {range_start}")
        reservations = self.active_reservations(unit.id, range_start, range_end)
        return occupied_dates_for(reservations, range_start, range_end)

    def can_book(
        self,
        unit: RentableUnit,
        start: date,
        end: date,
        exclude_reservation_id: Optional[str] = None
    ) -> BookingCheck:
        """Half-open overlap test plus the turnover buffer on both sides."""
        window = window_for_unit(unit)
        reach = buffer_reach(window)
        reservations = self.active_reservations(unit.id, start - reach, end + reach)
        result = check_booking(reservations, start, end, window, exclude_reservation_id)

        if not result.ok:
            logger.debug(
                f"Unit {unit.id}: {start}..{end} not bookable ({result.outcome.value}) "
                f"because of reservation {getattr(result.reservation, 'id', None)}"
            )
        return result
