"""
Assignment data access layer.

Reads return ledger Assignment objects built from pandas frames.
Writes that consume capacity go through write_with_capacity_check, which
runs the capacity check and the write in one transaction under a
per-engineer lock so two concurrent writers cannot both pass validation
against the same stale read.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, Iterable, Iterator, List, Optional

import pandas as pd
from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection

from engineer_capacity.data.engineers import get_max_capacity
from engineer_capacity.data.store import assignments, get_connection, get_engine, projects
from engineer_capacity.ledger.capacity_domain import counts_toward_capacity, validate_allocation
from engineer_capacity.ledger.capacity_models import (
    CAPACITY_STATUSES,
    Assignment,
    AssignmentStatus,
    Interval,
)
from engineer_capacity.ledger.errors import AssignmentNotFoundError, InvalidStatusTransitionError
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)


# ===================================================================
# Row conversion
# ===================================================================

def _as_date(value) -> date:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    return value


def _nullable(value):
    return None if value is None or pd.isna(value) else value


def _frame_to_assignments(df: pd.DataFrame) -> List[Assignment]:
    return [
        Assignment(
            id=str(row["id"]),
            engineer_id=str(row["engineer_id"]),
            project_id=str(row["project_id"]),
            allocation_percentage=int(row["allocation_percentage"]),
            start_date=_as_date(row["start_date"]),
            end_date=_as_date(row["end_date"]),
            status=AssignmentStatus(row["status"]),
            project_name=_nullable(row["project_name"]),
            role=_nullable(row["role"]),
            notes=_nullable(row["notes"]),
        )
        for _, row in df.iterrows()
    ]


def _base_select():
    return select(assignments, projects.c.name.label("project_name")).select_from(
        assignments.outerjoin(projects, assignments.c.project_id == projects.c.id)
    )


def _read(stmt, conn: Optional[Connection]) -> List[Assignment]:
    if conn is None:
        with get_connection() as own:
            df = pd.read_sql(stmt, own)
    else:
        df = pd.read_sql(stmt, conn)
    return _frame_to_assignments(df)


# ===================================================================
# Reads
# ===================================================================

def get_assignment(assignment_id: str, conn: Optional[Connection] = None) -> Assignment:
    found = _read(_base_select().where(assignments.c.id == assignment_id), conn)
    if not found:
        raise AssignmentNotFoundError(assignment_id)
    return found[0]


def list_assignments_for_engineer(
    engineer_id: str,
    statuses: Optional[Iterable[AssignmentStatus]] = CAPACITY_STATUSES,
    conn: Optional[Connection] = None,
) -> List[Assignment]:
    """All of an engineer's assignments, planned/active only by default."""
    stmt = _base_select().where(assignments.c.engineer_id == engineer_id)
    if statuses is not None:
        stmt = stmt.where(assignments.c.status.in_([s.value for s in statuses]))
    return _read(stmt.order_by(assignments.c.start_date, assignments.c.id), conn)


def list_overlapping(
    engineer_id: str,
    interval: Interval,
    conn: Optional[Connection] = None,
) -> List[Assignment]:
    """
    The engineer's planned/active assignments overlapping ``interval``.

    Same closed-interval test as capacity_domain.overlaps, pushed into SQL.
    """
    stmt = _base_select().where(
        assignments.c.engineer_id == engineer_id,
        assignments.c.status.in_([s.value for s in CAPACITY_STATUSES]),
        assignments.c.start_date <= interval.end,
        assignments.c.end_date >= interval.start,
    )
    return _read(stmt.order_by(assignments.c.start_date, assignments.c.id), conn)


def list_assignments(
    interval: Optional[Interval] = None,
    statuses: Optional[Iterable[AssignmentStatus]] = None,
    conn: Optional[Connection] = None,
    as_of: Optional[date] = None,
) -> List[Assignment]:
    """
    Assignments for every engineer, optionally limited to those overlapping
    ``interval`` or covering the single day ``as_of``.
    """
    stmt = _base_select()
    if as_of is not None:
        stmt = stmt.where(
            assignments.c.start_date <= as_of,
            assignments.c.end_date >= as_of,
        )
    if interval is not None:
        stmt = stmt.where(
            assignments.c.start_date <= interval.end,
            assignments.c.end_date >= interval.start,
        )
    if statuses is not None:
        stmt = stmt.where(assignments.c.status.in_([s.value for s in statuses]))
    return _read(stmt.order_by(assignments.c.engineer_id, assignments.c.start_date), conn)


# ===================================================================
# Writes
# ===================================================================

_locks_guard = threading.Lock()
_engineer_locks: Dict[str, threading.Lock] = {}


@contextmanager
def engineer_write_lock(engineer_id: str) -> Iterator[None]:
    with _locks_guard:
        lock = _engineer_locks.setdefault(engineer_id, threading.Lock())
    with lock:
        yield


def _values(assignment: Assignment) -> dict:
    return {
        "engineer_id": assignment.engineer_id,
        "project_id": assignment.project_id,
        "allocation_percentage": assignment.allocation_percentage,
        "start_date": assignment.start_date,
        "end_date": assignment.end_date,
        "status": assignment.status.value,
        "role": assignment.role,
        "notes": assignment.notes,
    }


def _raise_stale(conn: Connection, assignment_id: str, target: AssignmentStatus) -> None:
    """The conditional write matched nothing: the row is gone or its status moved."""
    status = conn.execute(
        select(assignments.c.status).where(assignments.c.id == assignment_id)
    ).scalar()
    if status is None:
        raise AssignmentNotFoundError(assignment_id)
    raise InvalidStatusTransitionError(status, target.value)


def write_with_capacity_check(
    assignment: Assignment,
    is_new: bool,
    expected_status: Optional[AssignmentStatus] = None,
) -> Assignment:
    """
    Insert (``is_new``) or update ``assignment`` after re-validating the
    engineer's capacity inside the same transaction.

    An update only lands while the stored status still equals
    ``expected_status`` (the status the caller read), so a concurrent
    cancel or completion is never overwritten. Any ledger error rolls the
    transaction back.
    """
    with engineer_write_lock(assignment.engineer_id):
        with get_engine().begin() as conn:
            max_capacity = get_max_capacity(assignment.engineer_id, conn=conn, for_update=True)

            if counts_toward_capacity(assignment):
                existing = list_overlapping(assignment.engineer_id, assignment.interval, conn=conn)
                validate_allocation(
                    assignment.engineer_id,
                    assignment.interval,
                    assignment.allocation_percentage,
                    max_capacity,
                    existing,
                    exclude_assignment_id=None if is_new else assignment.id,
                )

            if is_new:
                conn.execute(insert(assignments).values(id=assignment.id, **_values(assignment)))
            else:
                stmt = update(assignments).where(assignments.c.id == assignment.id)
                if expected_status is not None:
                    stmt = stmt.where(assignments.c.status == expected_status.value)
                result = conn.execute(stmt.values(**_values(assignment)))
                if result.rowcount == 0:
                    _raise_stale(conn, assignment.id, assignment.status)

    return assignment


def set_status(
    assignment_id: str,
    status: AssignmentStatus,
    expected_status: AssignmentStatus,
) -> None:
    """
    Status-only write, applied only if the row is still ``expected_status``.
    Moving to a non-consuming status never needs a capacity check.
    """
    with get_engine().begin() as conn:
        result = conn.execute(
            update(assignments)
            .where(
                assignments.c.id == assignment_id,
                assignments.c.status == expected_status.value,
            )
            .values(status=status.value)
        )
        if result.rowcount == 0:
            _raise_stale(conn, assignment_id, status)


def delete_assignment_row(assignment_id: str) -> None:
    with get_engine().begin() as conn:
        result = conn.execute(delete(assignments).where(assignments.c.id == assignment_id))
        if result.rowcount == 0:
            raise AssignmentNotFoundError(assignment_id)
