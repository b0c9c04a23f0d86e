"""
Shared fixtures: an in-memory SQLite database per test, unit and
reservation factories, and a TestClient wired to the same database.
"""

import os
import sys
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Must be set before the settings object is created
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from rental_engine.database import Base, get_db  # noqa: E402
from rental_engine import models  # noqa: E402,F401
from rental_engine.models.reservation import Reservation, ReservationStatus  # noqa: E402
from rental_engine.services.unit_service import UnitService  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_unit(db):
    """Create a unit through the service so the buffer is derived the normal way."""
    def _make(
        base_price: int = 2000,
        check_in_time: str = "14:00",
        check_out_time: str = "12:00",
        owner_id: str = "host-1",
        **kwargs
    ):
        return UnitService(db).create_unit(
            owner_id=owner_id,
            base_price=base_price,
            check_in_time=check_in_time,
            check_out_time=check_out_time,
            **kwargs
        )
    return _make


@pytest.fixture
def add_reservation(db):
    """Insert a reservation directly, bypassing the booking checks."""
    def _add(
        unit,
        start: date,
        end: date,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        guest_id: str = "guest-1",
        total_price: int = 0
    ):
        reservation = Reservation(
            unit_id=unit.id,
            guest_id=guest_id,
            start_date=start,
            end_date=end,
            status=status.value,
            total_price=total_price or unit.base_price * (end - start).days,
        )
        db.add(reservation)
        db.commit()
        db.refresh(reservation)
        return reservation
    return _add


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from rental_engine.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
