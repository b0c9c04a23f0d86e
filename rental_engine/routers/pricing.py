"""
Pricing Router

API endpoints for per-date price overrides and stay quotes.
"""

from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.unit import RentableUnit
from ..schemas.pricing import PriceOverrideRequest, PriceOverrideResult, QuoteRequest, QuoteResponse, QuoteNight
from ..services.booking_guard import BookingConflictGuard
from ..services.price_rules import PriceRuleStore
from ..utils.dependencies import get_caller_id, require_unit_owner
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/units", tags=["Pricing"])


@router.put("/{unit_id}/prices/{day}", response_model=PriceOverrideResult)
@limiter.limit(get_rate_limit("price_write"))
async def set_price_override(
    request: Request,
    day: date,
    body: PriceOverrideRequest,
    unit: RentableUnit = Depends(require_unit_owner),
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db)
):
    """
    Set the nightly price for one date. A null price clears the override.

    Refused with 409 DATE_OCCUPIED while a pending or confirmed stay covers
    the date, checkout day included.
    """
    store = PriceRuleStore(db)
    if body.price is None:
        store.clear_price(unit, day)
        return PriceOverrideResult(unit_id=unit.id, date=day, price=unit.base_price, is_override=False)

    rule = store.set_price(unit, day, body.price, caller_id=caller_id)
    return PriceOverrideResult(
        unit_id=unit.id,
        date=day,
        price=rule.price,
        is_override=True,
        kind=rule.kind,
    )


@router.delete("/{unit_id}/prices/{day}", response_model=PriceOverrideResult)
@limiter.limit(get_rate_limit("price_write"))
async def clear_price_override(
    request: Request,
    day: date,
    unit: RentableUnit = Depends(require_unit_owner),
    db: Session = Depends(get_db)
):
    """Reset a date to the base price. Succeeds when there was no override."""
    PriceRuleStore(db).clear_price(unit, day)
    return PriceOverrideResult(unit_id=unit.id, date=day, price=unit.base_price, is_override=False)


@router.post("/{unit_id}/quote", response_model=QuoteResponse)
@limiter.limit(get_rate_limit("quote"))
async def quote_stay(
    request: Request,
    unit_id: str,
    body: QuoteRequest,
    db: Session = Depends(get_db)
):
    """
    Price a stay without booking it. Fails with the same errors a booking
    for the same dates would.
    """
    quote = BookingConflictGuard(db).quote(unit_id, body.start_date, body.end_date)
    return QuoteResponse(
        unit_id=quote.unit_id,
        start_date=quote.start_date,
        end_date=quote.end_date,
        num_nights=quote.num_nights,
        nights=[QuoteNight(date=n.date, price=n.price, is_override=n.is_override) for n in quote.nights],
        total_price=quote.total_price,
        average_nightly=quote.average_nightly,
    )
