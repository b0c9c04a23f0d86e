import logging
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Some hosts hand out postgres:// URLs, SQLAlchemy needs postgresql://"""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


database_url = normalize_database_url(settings.database_url)

# Handle SQLite special case for check_same_thread
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    database_url,
    connect_args=connect_args,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Same constraint as alembic/versions/001_initial.py. Half-open daterange so
# back-to-back stays are allowed.
OVERLAP_CONSTRAINT = "ex_reservations_no_overlap"
OVERLAP_CONSTRAINT_DDL = f"""
    ALTER TABLE reservations
    ADD CONSTRAINT {OVERLAP_CONSTRAINT}
    EXCLUDE USING gist (
        unit_id WITH =,
        daterange(start_date, end_date, '[)') WITH &&
    )
    WHERE (status IN ('PENDING', 'CONFIRMED'))
"""


def ensure_overlap_constraint(connection) -> bool:
    """
    Add the no-overlap exclusion constraint on PostgreSQL if it is missing.

    create_all() cannot express it, so deployments that skip Alembic get it
    here. Returns False on other dialects, which rely on the write lock only.
    """
    if connection.dialect.name != "postgresql":
        return False

    connection.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
    exists = connection.execute(
        text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
        {"name": OVERLAP_CONSTRAINT}
    ).first()
    if exists is None:
        connection.execute(text(OVERLAP_CONSTRAINT_DDL))
        logger.info(f"Created constraint {OVERLAP_CONSTRAINT}")
    return True


def create_tables():
    """Create all tables in the database, plus the overlap constraint on PostgreSQL"""
    # Models must be imported so their tables are registered on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    with engine.begin() as connection:
        ensure_overlap_constraint(connection)
    logger.info(f"Database ready ({engine.dialect.name})")
