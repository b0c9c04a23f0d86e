"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row-level locking helpers
- A per-unit write lock that serializes check-then-write sequences
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional, TypeVar, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except AttributeError:
        return False


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'sqlite'
    except AttributeError:
        return True  # Default to SQLite for safety


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False,
    skip_locked: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise error immediately if lock unavailable (PostgreSQL only)
        skip_locked: If True, skip locked rows (PostgreSQL only)

    Returns:
        The locked model instance, or None if not found

    Raises:
        OperationalError: If nowait=True and row is locked by another transaction

    Example:
        unit = acquire_row_lock(db, RentableUnit, RentableUnit.id == unit_id, nowait=True)
    """
    query = db.query(model).filter(filter_condition)

    # Only apply locking on PostgreSQL
    if is_postgres(db):
        if skip_locked:
            query = query.with_for_update(skip_locked=True)
        elif nowait:
            query = query.with_for_update(nowait=True)
        else:
            query = query.with_for_update()

    return query.first()


class _KeyedLocks:
    """
    Process-local locks keyed by id, for dialects without SELECT ... FOR UPDATE.

    An entry lives only while someone holds or waits for it, so the map
    stays as small as the number of units being written right now.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries = {}  # key -> [RLock, users]

    def __len__(self):
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, key: str, blocking: bool = True):
        """Yields True once the lock is held, False if blocking=False and it is taken."""
        with self._guard:
            entry = self._entries.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            acquired = entry[0].acquire(blocking=blocking)
            try:
                yield acquired
            finally:
                if acquired:
                    entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]


_unit_locks = _KeyedLocks()


@contextmanager
def unit_write_lock(db: Session, unit_id: str, nowait: bool = False):
    """
    Serialize availability-check-then-write sequences for one unit.

    On PostgreSQL the unit row is locked with SELECT ... FOR UPDATE and held
    until the surrounding transaction ends, so the commit must happen inside
    the block. Other dialects fall back to a process-local lock per unit,
    taken only for units that exist.

    Yields the unit, or raises UnitNotFound. Lock contention with
    nowait=True is reported as Conflict.

    Example:
        with unit_write_lock(db, unit_id) as unit:
            ...check...
            db.add(reservation)
            db.commit()
    """
    from ..models.unit import RentableUnit
    from ..services.exceptions import Conflict, UnitNotFound

    if is_postgres(db):
        try:
            unit = acquire_row_lock(db, RentableUnit, RentableUnit.id == unit_id, nowait=nowait)
        except OperationalError as e:
            db.rollback()
            logger.warning(f"Lock contention on unit {unit_id}: {e}")
            raise Conflict(message="Unit is being updated by another request, try again")
        if unit is None:
            raise UnitNotFound(unit_id)
        try:
            yield unit
        except Exception:
            # Releases the row lock together with any partial write
            db.rollback()
            raise
        return

    if db.query(RentableUnit.id).filter(RentableUnit.id == unit_id).first() is None:
        raise UnitNotFound(unit_id)

    with _unit_locks.hold(unit_id, blocking=not nowait) as acquired:
        if not acquired:
            raise Conflict(message="Unit is being updated by another request, try again")
        unit = db.query(RentableUnit).filter(RentableUnit.id == unit_id).first()
        if unit is None:
            raise UnitNotFound(unit_id)
        try:
            yield unit
        except Exception:
            db.rollback()
            raise
