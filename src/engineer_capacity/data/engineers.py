"""
Engineer data access.

The ledger only reads engineers; add_engineer / add_project exist for
seeding and tests.
"""

from __future__ import annotations

from typing import List, Optional

import pandas as pd
from sqlalchemy import insert, select
from sqlalchemy.engine import Connection

from engineer_capacity.data.store import engineers, get_connection, get_engine, projects
from engineer_capacity.ledger.capacity_domain import check_max_capacity
from engineer_capacity.ledger.capacity_models import Engineer
from engineer_capacity.ledger.errors import UnknownEngineerError
from engineer_capacity.utils.config import config


def _nullable(value):
    return None if value is None or pd.isna(value) else value


def _row_to_engineer(row) -> Engineer:
    max_capacity = _nullable(row["max_capacity"])
    return Engineer(
        id=str(row["id"]),
        name=str(row["name"]),
        max_capacity=int(max_capacity) if max_capacity is not None else None,
        department=_nullable(row["department"]),
        is_active=bool(row["is_active"]),
    )


def get_engineer(engineer_id: str, conn: Optional[Connection] = None, for_update: bool = False) -> Engineer:
    """
    Load one engineer. ``for_update`` locks the row until the caller's
    transaction ends (ignored by SQLite, whose write lock covers it).
    """
    stmt = select(engineers).where(engineers.c.id == engineer_id)
    if for_update:
        stmt = stmt.with_for_update()

    if conn is None:
        with get_connection() as own:
            row = own.execute(stmt).mappings().first()
    else:
        row = conn.execute(stmt).mappings().first()

    if row is None:
        raise UnknownEngineerError(engineer_id)
    return _row_to_engineer(row)


def get_max_capacity(engineer_id: str, conn: Optional[Connection] = None, for_update: bool = False) -> int:
    engineer = get_engineer(engineer_id, conn=conn, for_update=for_update)
    return check_max_capacity(engineer_id, engineer.max_capacity)


def list_engineers(department: Optional[str] = None, active_only: bool = True) -> List[Engineer]:
    stmt = select(engineers).order_by(engineers.c.name, engineers.c.id)
    if department:
        stmt = stmt.where(engineers.c.department == department)
    if active_only:
        stmt = stmt.where(engineers.c.is_active.is_(True))

    with get_connection() as conn:
        df = pd.read_sql(stmt, conn)

    return [_row_to_engineer(row) for _, row in df.iterrows()]


def add_engineer(
    engineer_id: str,
    name: str,
    max_capacity: Optional[int] = None,
    department: Optional[str] = None,
    is_active: bool = True,
) -> Engineer:
    engineer = Engineer(
        id=engineer_id,
        name=name,
        max_capacity=config.DEFAULT_MAX_CAPACITY if max_capacity is None else max_capacity,
        department=department,
        is_active=is_active,
    )
    with get_engine().begin() as conn:
        conn.execute(
            insert(engineers).values(
                id=engineer.id,
                name=engineer.name,
                department=engineer.department,
                max_capacity=engineer.max_capacity,
                is_active=engineer.is_active,
            )
        )
    return engineer


def add_project(project_id: str, name: str) -> None:
    with get_engine().begin() as conn:
        conn.execute(insert(projects).values(id=project_id, name=name))
