"""
Calendar Router

Guest-facing calendar (prices and occupied dates for a range) and the
host's management view.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.unit import RentableUnit
from ..schemas.pricing import CalendarResponse, PriceRuleResponse
from ..schemas.reservation import ManageViewResponse, ReservationResponse
from ..services.calendar_service import CalendarService
from ..utils.dependencies import get_unit_or_404, require_unit_owner
from ..utils.rate_limiter import limiter, get_rate_limit

router = APIRouter(prefix="/api/units", tags=["Calendar"])


@router.get("/{unit_id}/calendar", response_model=CalendarResponse)
@limiter.limit(get_rate_limit("calendar"))
async def get_calendar(
    request: Request,
    from_date: Optional[date] = Query(None, description="First day, defaults to today in the unit's time zone"),
    to_date: Optional[date] = Query(None, description="Last day, inclusive"),
    include_past: bool = Query(False),
    unit: RentableUnit = Depends(get_unit_or_404),
    db: Session = Depends(get_db)
):
    view = CalendarService(db).get_calendar(unit, from_date, to_date, include_past)
    return CalendarResponse(
        unit_id=view.unit_id,
        base_price=view.base_price,
        from_date=view.from_date,
        to_date=view.to_date,
        overrides=[PriceRuleResponse.model_validate(rule) for rule in view.overrides],
        occupied_dates=view.occupied_dates,
    )


@router.get("/{unit_id}/calendar/manage", response_model=ManageViewResponse)
async def get_manage_view(
    unit: RentableUnit = Depends(require_unit_owner),
    db: Session = Depends(get_db)
):
    """Every override and every active reservation, for the unit owner"""
    view = CalendarService(db).get_manage_view(unit)
    return ManageViewResponse(
        unit_id=view.unit_id,
        base_price=view.base_price,
        overrides=[PriceRuleResponse.model_validate(rule) for rule in view.overrides],
        reservations=[ReservationResponse.model_validate(r) for r in view.reservations],
    )
