"""
Price Rule Model

Sparse per-date price overrides for a unit.

- At most one rule per (unit_id, date), enforced by a unique constraint
  and written through upsert only
- kind is SPECIAL when price differs from the unit's base price at the
  moment the rule was written; it is never recomputed afterwards
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class PriceKind(str, enum.Enum):
    BASE = "BASE"
    SPECIAL = "SPECIAL"


class PriceRule(Base):
    __tablename__ = "price_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    price = Column(Integer, nullable=False)
    kind = Column(String(10), nullable=False, default=PriceKind.SPECIAL.value)

    # Tracking
    created_by_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    unit = relationship("RentableUnit", back_populates="price_rules")

    __table_args__ = (
        UniqueConstraint("unit_id", "date", name="uq_price_rules_unit_date"),
        CheckConstraint("price >= 1", name="ck_price_rules_price_positive"),
    )

    def __repr__(self):
        return f"<PriceRule unit_id={self.unit_id} date={self.date} price={self.price} {self.kind}>"
