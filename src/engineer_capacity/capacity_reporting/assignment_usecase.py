"""
Assignment Write Path Use Case

Purpose:
- Create / update assignments only after the capacity check passes
- Move assignments through their lifecycle
- Answer "what would this assignment collide with?" before a write

Important:
- The capacity check and the write share one transaction
  (data.assignments.write_with_capacity_check)
- A rejected write leaves nothing behind
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date
from typing import Optional

from engineer_capacity.data.assignments import (
    delete_assignment_row,
    get_assignment,
    list_overlapping,
    set_status,
    write_with_capacity_check,
)
from engineer_capacity.data.engineers import get_engineer, get_max_capacity
from engineer_capacity.ledger.capacity_domain import (
    build_conflict_report,
    check_allocation,
    parse_status,
    transition_status,
    validate_allocation,
)
from engineer_capacity.ledger.capacity_models import (
    Assignment,
    AssignmentStatus,
    ConflictReport,
    Interval,
)
from engineer_capacity.ledger.errors import CapacityLedgerError
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "engineer_id",
        "project_id",
        "allocation_percentage",
        "start_date",
        "end_date",
        "status",
        "role",
        "notes",
    }
)


def create_assignment(
    engineer_id: str,
    project_id: str,
    allocation_percentage: int,
    start_date: date,
    end_date: date,
    status: AssignmentStatus = AssignmentStatus.PLANNED,
    role: Optional[str] = None,
    notes: Optional[str] = None,
    assignment_id: Optional[str] = None,
) -> Assignment:
    """
    Create an assignment, rejecting it if the engineer's overlapping
    planned/active allocation plus this one would exceed max capacity.
    """
    logger.info(
        "Creating assignment | engineer=%s project=%s allocation=%s %s..%s",
        engineer_id,
        project_id,
        allocation_percentage,
        start_date,
        end_date,
    )
    try:
        check_allocation(allocation_percentage)
        assignment = Assignment(
            id=assignment_id or uuid.uuid4().hex,
            engineer_id=engineer_id,
            project_id=project_id,
            allocation_percentage=allocation_percentage,
            start_date=start_date,
            end_date=end_date,
            status=parse_status(AssignmentStatus.PLANNED, status),
            role=role,
            notes=notes,
        )
        write_with_capacity_check(assignment, is_new=True)
    except CapacityLedgerError as exc:
        logger.warning("Assignment rejected | engineer=%s | %s", engineer_id, exc.message)
        raise

    logger.info("Assignment created | id=%s", assignment.id)
    return assignment


def update_assignment(assignment_id: str, **changes) -> Assignment:
    """
    Apply field changes and re-validate capacity, excluding the assignment's
    own previous version from the overlap sum.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise TypeError(f"Unknown assignment field(s): {', '.join(sorted(unknown))}")

    try:
        current = get_assignment(assignment_id)

        if "status" in changes:
            new_status = parse_status(current.status, changes["status"])
            if new_status != current.status:
                new_status = transition_status(current.status, new_status)
            changes["status"] = new_status

        if "allocation_percentage" in changes:
            check_allocation(changes["allocation_percentage"])

        updated = replace(current, **changes)
        write_with_capacity_check(updated, is_new=False, expected_status=current.status)
    except CapacityLedgerError as exc:
        logger.warning("Assignment update rejected | id=%s | %s", assignment_id, exc.message)
        raise

    logger.info("Assignment updated | id=%s | fields=%s", assignment_id, sorted(changes))
    return updated


def transition_assignment(assignment_id: str, target: AssignmentStatus) -> Assignment:
    """
    Status-only change. Never re-checks capacity: planned -> active keeps
    consuming the same allocation and every other move releases it.
    """
    current = get_assignment(assignment_id)
    try:
        new_status = transition_status(current.status, target)
        set_status(assignment_id, new_status, expected_status=current.status)
    except CapacityLedgerError as exc:
        logger.warning("Status change rejected | id=%s | %s", assignment_id, exc.message)
        raise

    logger.info("Assignment %s: %s -> %s", assignment_id, current.status.value, new_status.value)
    return replace(current, status=new_status)


def cancel_assignment(assignment_id: str) -> Assignment:
    return transition_assignment(assignment_id, AssignmentStatus.CANCELLED)


def delete_assignment(assignment_id: str) -> None:
    delete_assignment_row(assignment_id)
    logger.info("Assignment deleted | id=%s", assignment_id)


def check_conflicts(
    engineer_id: str,
    start_date: date,
    end_date: date,
    exclude_assignment_id: Optional[str] = None,
) -> ConflictReport:
    get_engineer(engineer_id)
    interval = Interval(start_date, end_date)
    existing = list_overlapping(engineer_id, interval)
    report = build_conflict_report(engineer_id, interval, existing, exclude_assignment_id)

    logger.info(
        "Conflict check | engineer=%s %s..%s | conflicts=%s",
        engineer_id,
        start_date,
        end_date,
        len(report.conflicts),
    )
    return report


def validate_prospective_assignment(
    engineer_id: str,
    start_date: date,
    end_date: date,
    allocation_percentage: int,
    exclude_assignment_id: Optional[str] = None,
) -> None:
    """
    Read-only pre-check for forms and the CLI. Raises the same errors the
    write path would; passing it does not reserve capacity.
    """
    interval = Interval(start_date, end_date)
    max_capacity = get_max_capacity(engineer_id)
    existing = list_overlapping(engineer_id, interval)
    validate_allocation(
        engineer_id,
        interval,
        allocation_percentage,
        max_capacity,
        existing,
        exclude_assignment_id=exclude_assignment_id,
    )
