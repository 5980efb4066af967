"""
Storage collaborator for the capacity ledger.

Owns the SQLAlchemy engine and the three tables the ledger reads
(engineers, projects, assignments). Query helpers live in
data/engineers.py and data/assignments.py.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
)
from sqlalchemy.engine import Connection, Engine

from engineer_capacity.utils.config import config
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)

metadata = MetaData()


# ------------------------------------------------------------
# Tables
# ------------------------------------------------------------
engineers = Table(
    "engineers",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("department", String(50), nullable=True),
    Column("max_capacity", Integer, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
)

projects = Table(
    "projects",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(200), nullable=False),
)

assignments = Table(
    "assignments",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("engineer_id", String(64), ForeignKey("engineers.id"), nullable=False),
    Column("project_id", String(64), ForeignKey("projects.id"), nullable=False),
    Column("allocation_percentage", Integer, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("status", String(16), nullable=False, default="planned"),
    Column("role", String(50), nullable=True),
    Column("notes", String(500), nullable=True),
    CheckConstraint(
        "allocation_percentage BETWEEN 1 AND 100",
        name="ck_assignments_allocation_range",
    ),
    CheckConstraint("end_date > start_date", name="ck_assignments_dates"),
    # capacity queries filter on all four
    Index("ix_assignments_capacity", "engineer_id", "status", "start_date", "end_date"),
)


# ------------------------------------------------------------
# Engine
# ------------------------------------------------------------
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        logger.info("Creating engine for %s", config.DATABASE_URL)
        _engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)
    return _engine


def set_engine(engine: Optional[Engine]) -> None:
    """Swap the module engine (tests, or a caller that owns its own pool)."""
    global _engine
    _engine = engine


@contextmanager
def get_connection() -> Iterator[Connection]:
    with get_engine().connect() as conn:
        yield conn


def init_db() -> None:
    logger.info("Initialising schema at %s", get_engine().url)
    try:
        metadata.create_all(get_engine())
    except Exception:
        logger.exception("Schema initialisation failed")
        raise
