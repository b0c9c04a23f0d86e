from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.unit import RentableUnit
from ..schemas.unit import UnitResponse, UnitCreate, UnitUpdate
from ..services.unit_service import UnitService
from ..utils.dependencies import get_caller_id, get_unit_or_404, require_unit_owner

router = APIRouter(prefix="/api/units", tags=["Units"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=UnitResponse)
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=UnitResponse)
async def create_unit(
    unit_data: UnitCreate,
    db: Session = Depends(get_db),
    caller_id: str = Depends(get_caller_id)
):
    """Create a unit owned by the caller. The cleaning buffer is derived from the times."""
    return UnitService(db).create_unit(owner_id=caller_id, **unit_data.model_dump())


@router.get("/{unit_id}", response_model=UnitResponse)
async def get_unit(unit: RentableUnit = Depends(get_unit_or_404)):
    return unit


@router.patch("/{unit_id}", response_model=UnitResponse)
async def update_unit(
    unit_data: UnitUpdate,
    unit: RentableUnit = Depends(require_unit_owner),
    db: Session = Depends(get_db)
):
    """
    Partial update. Existing price overrides keep their BASE/SPECIAL label
    even when base_price changes.
    """
    return UnitService(db).update_unit(unit.id, **unit_data.model_dump(exclude_unset=True))
