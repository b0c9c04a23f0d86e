"""
Request dependencies: caller identity and unit ownership.

Credentials are verified upstream; the gateway forwards the authorized
caller id in X-Caller-Id and nothing here parses tokens.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.unit import RentableUnit
from ..services.unit_service import UnitService

CALLER_ID_HEADER = "X-Caller-Id"


def get_caller_id(x_caller_id: Optional[str] = Header(None, alias=CALLER_ID_HEADER)) -> str:
    if not x_caller_id or not x_caller_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Caller identity is required"
        )
    return x_caller_id.strip()


def get_unit_or_404(unit_id: str, db: Session = Depends(get_db)) -> RentableUnit:
    return UnitService(db).get_unit(unit_id)


def require_unit_owner(
    unit: RentableUnit = Depends(get_unit_or_404),
    caller_id: str = Depends(get_caller_id)
) -> RentableUnit:
    """Only the unit's owner may change its prices or settings"""
    if unit.owner_id != caller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the unit owner can perform this action"
        )
    return unit
