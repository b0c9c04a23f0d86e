"""
Reservations Router

Booking creation goes through BookingConflictGuard: validate, check
availability, price, commit. Retries carrying the same Idempotency-Key
return the reservation created by the first attempt for the same guest.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.reservation import ReservationStatus
from ..schemas.reservation import ReservationCreate, ReservationResponse, ReservationStatusUpdate
from ..services.booking_guard import BookingConflictGuard
from ..utils.dependencies import get_caller_id
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ReservationResponse)
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=ReservationResponse)
@limiter.limit(get_rate_limit("reservation_create"))
async def create_reservation(
    request: Request,
    response: Response,
    reservation_data: ReservationCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
    db: Session = Depends(get_db),
    caller_id: str = Depends(get_caller_id)
):
    """
    Book a stay for the caller. The total is computed now and never changes.

    Errors: 400 INVALID_RANGE / STAY_LENGTH, 404 NOT_FOUND,
    409 CONFLICT / BUFFER_VIOLATION, 422 IDEMPOTENCY_KEY_REUSED.
    """
    result = BookingConflictGuard(db).book(
        unit_id=reservation_data.unit_id,
        start=reservation_data.start_date,
        end=reservation_data.end_date,
        guest_id=caller_id,
        idempotency_key=idempotency_key,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return result.reservation


def _ensure_participant(reservation, caller_id: str):
    # Guest who booked, or the owner of the unit
    if caller_id not in (reservation.guest_id, reservation.unit.owner_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this reservation"
        )


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    caller_id: str = Depends(get_caller_id)
):
    reservation = BookingConflictGuard(db).get_reservation(reservation_id)
    _ensure_participant(reservation, caller_id)
    return reservation


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
async def update_reservation_status(
    reservation_id: str,
    body: ReservationStatusUpdate,
    db: Session = Depends(get_db),
    caller_id: str = Depends(get_caller_id)
):
    """
    Confirm or cancel a reservation.

    Only the unit owner confirms; guest or owner may cancel. Cancelling
    releases the dates at once.
    """
    guard = BookingConflictGuard(db)
    reservation = guard.get_reservation(reservation_id)
    _ensure_participant(reservation, caller_id)

    target = ReservationStatus(body.status.value)
    if target == ReservationStatus.CONFIRMED and caller_id != reservation.unit.owner_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the unit owner can confirm a reservation"
        )
    return guard.change_status(reservation_id, target)
