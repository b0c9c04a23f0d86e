"""
Rentable Unit Model

A listing whose calendar and nightly prices are managed by one host.
The turnover window (check-in / check-out times) and the derived
cleaning buffer live here.
"""

import uuid
from datetime import datetime, time
from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class RentableUnit(Base):
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="")

    # Nightly rate, whole currency units
    base_price = Column(Integer, nullable=False)

    # Turnover window, "HH:MM" on a 24h clock
    check_in_time = Column(String(5), nullable=False, default="15:00")
    check_out_time = Column(String(5), nullable=False, default="11:00")

    # Always derived from the two times, see services.time_window
    cleaning_buffer_hours = Column(Integer, nullable=False, default=4)

    # Fixed reference time zone, only used to decide what "today" is
    timezone = Column(String(50), nullable=False, default="UTC")

    min_stay_nights = Column(Integer, nullable=False, default=1)
    # NULL means no upper limit
    max_stay_nights = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    price_rules = relationship("PriceRule", back_populates="unit", cascade="all, delete-orphan")
    reservations = relationship("Reservation", back_populates="unit", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("base_price >= 1", name="ck_units_base_price_positive"),
        CheckConstraint("cleaning_buffer_hours >= 1", name="ck_units_buffer_positive"),
        CheckConstraint("min_stay_nights >= 1", name="ck_units_min_stay_positive"),
        CheckConstraint(
            "max_stay_nights IS NULL OR max_stay_nights >= min_stay_nights",
            name="ck_units_max_stay_range"
        ),
    )

    @property
    def check_in(self) -> time:
        return time.fromisoformat(self.check_in_time)

    @property
    def check_out(self) -> time:
        return time.fromisoformat(self.check_out_time)

    def __repr__(self):
        return f"<RentableUnit {self.id} base={self.base_price}>"
