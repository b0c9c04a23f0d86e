# Models package
from .unit import RentableUnit
from .price_rule import PriceRule, PriceKind
from .reservation import Reservation, ReservationStatus, ACTIVE_STATUSES

__all__ = [
    "RentableUnit",
    "PriceRule", "PriceKind",
    "Reservation", "ReservationStatus", "ACTIVE_STATUSES",
]
