import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, Integer, ForeignKey, DateTime, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


# Statuses that hold dates on the calendar
ACTIVE_STATUSES = (ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value)


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    guest_id = Column(String(36), nullable=False)

    # Half-open stay [start_date, end_date); end_date is the checkout day
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)

    # Frozen when the reservation is created, never recomputed
    total_price = Column(Integer, nullable=False)

    # Client supplied key so a retried request does not create a second reservation
    idempotency_key = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    unit = relationship("RentableUnit", back_populates="reservations")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_reservations_range"),
        # Keys are per guest: two guests may pick the same key independently
        UniqueConstraint("unit_id", "guest_id", "idempotency_key", name="uq_reservations_idempotency"),
        Index("ix_reservations_unit_dates", "unit_id", "start_date", "end_date"),
        Index("ix_reservations_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days

    def __repr__(self):
        return f"<Reservation {self.id} {self.start_date}..{self.end_date} {self.status}>"
