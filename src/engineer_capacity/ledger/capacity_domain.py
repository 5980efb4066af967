"""
Capacity Ledger Domain Logic

Enterprise rules:
- Pure functions only
- No database access
- No printing
- No config
- No side effects

Intervals are closed on both ends everywhere in this module: an assignment
ending on the day another starts overlaps it, and an assignment is current
on its first and last day.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from engineer_capacity.ledger.capacity_models import (
    CAPACITY_STATUSES,
    Assignment,
    AssignmentStatus,
    ConflictEntry,
    ConflictReport,
    Interval,
    UtilizationResult,
)
from engineer_capacity.ledger.errors import (
    CapacityExceededError,
    InvalidAllocationError,
    InvalidCapacityConfigError,
    InvalidStatusTransitionError,
)

MIN_ALLOCATION = 1
MAX_ALLOCATION = 100
MAX_CAPACITY = 100


# ----------------------------
# Interval arithmetic
# ----------------------------

def overlaps(a: Interval, b: Interval) -> bool:
    return a.start <= b.end and a.end >= b.start


def contains(interval: Interval, day: date) -> bool:
    return interval.start <= day <= interval.end


def _as_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


# ----------------------------
# Aggregation
# ----------------------------

def counts_toward_capacity(assignment: Assignment) -> bool:
    return assignment.status in CAPACITY_STATUSES


def total_allocation(assignments: Iterable[Assignment]) -> int:
    return sum(int(a.allocation_percentage) for a in assignments)


def peak_allocation(
    engineer_id: str,
    interval: Interval,
    assignments: Iterable[Assignment],
) -> int:
    """
    Highest summed allocation on any single day of ``interval``.

    Allocation only rises where an assignment starts, so the interval start
    plus every assignment start inside it are the only days worth checking.
    """
    relevant = find_conflicts(engineer_id, interval, assignments)
    candidates = {interval.start}
    candidates.update(a.start_date for a in relevant if a.start_date > interval.start)

    return max(
        total_allocation(a for a in relevant if contains(a.interval, day))
        for day in candidates
    )


def allocation_for_range(assignment: Assignment, interval: Interval) -> float:
    """
    Allocation prorated over ``interval`` by the days the assignment covers.

    Days are counted inclusively on both sides.
    """
    if not overlaps(assignment.interval, interval):
        return 0.0

    start = max(assignment.start_date, interval.start)
    end = min(assignment.end_date, interval.end)
    overlap_days = (end - start).days + 1
    total_days = (interval.end - interval.start).days + 1

    return overlap_days / total_days * assignment.allocation_percentage


# ----------------------------
# Input checks
# ----------------------------

def check_allocation(allocation) -> int:
    if (
        isinstance(allocation, bool)
        or not isinstance(allocation, int)
        or not MIN_ALLOCATION <= allocation <= MAX_ALLOCATION
    ):
        raise InvalidAllocationError(allocation)
    return allocation


def check_max_capacity(engineer_id: str, max_capacity) -> int:
    if (
        isinstance(max_capacity, bool)
        or not isinstance(max_capacity, int)
        or not 0 < max_capacity <= MAX_CAPACITY
    ):
        raise InvalidCapacityConfigError(engineer_id, max_capacity)
    return max_capacity


# ----------------------------
# Conflict detection
# ----------------------------

def find_conflicts(
    engineer_id: str,
    interval: Interval,
    assignments: Iterable[Assignment],
    exclude_assignment_id: Optional[str] = None,
) -> List[Assignment]:
    """
    The engineer's planned/active assignments overlapping ``interval``,
    ordered by start date (then end date, then id).
    """
    conflicts = [
        a
        for a in assignments
        if a.engineer_id == engineer_id
        and counts_toward_capacity(a)
        and (exclude_assignment_id is None or a.id != exclude_assignment_id)
        and overlaps(a.interval, interval)
    ]
    return sorted(conflicts, key=lambda a: (a.start_date, a.end_date, str(a.id)))


def build_conflict_report(
    engineer_id: str,
    interval: Interval,
    assignments: Iterable[Assignment],
    exclude_assignment_id: Optional[str] = None,
) -> ConflictReport:
    conflicts = find_conflicts(engineer_id, interval, assignments, exclude_assignment_id)
    return ConflictReport(
        engineer_id=engineer_id,
        interval=interval,
        conflicts=[
            ConflictEntry(
                assignment_id=a.id,
                project_id=a.project_id,
                project_name=a.project_name,
                start_date=a.start_date,
                end_date=a.end_date,
                allocation=a.allocation_percentage,
                status=a.status,
            )
            for a in conflicts
        ],
    )


# ----------------------------
# Allocation validation
# ----------------------------

def validate_allocation(
    engineer_id: str,
    interval: Interval,
    proposed_allocation: int,
    max_capacity: int,
    assignments: Iterable[Assignment],
    exclude_assignment_id: Optional[str] = None,
) -> None:
    """
    Raise CapacityExceededError if accepting the proposed allocation would
    push the engineer above ``max_capacity``.

    A total exactly equal to ``max_capacity`` is accepted.
    """
    check_max_capacity(engineer_id, max_capacity)
    check_allocation(proposed_allocation)

    conflicts = find_conflicts(engineer_id, interval, assignments, exclude_assignment_id)
    current = total_allocation(conflicts)

    if current + proposed_allocation > max_capacity:
        raise CapacityExceededError(
            engineer_id,
            current=current,
            requested=proposed_allocation,
            max_capacity=max_capacity,
            conflicts=conflicts,
        )


# ----------------------------
# Utilization
# ----------------------------

def is_current(assignment: Assignment, as_of: date) -> bool:
    return assignment.status == AssignmentStatus.ACTIVE and contains(
        assignment.interval, _as_day(as_of)
    )


def is_overdue(assignment: Assignment, as_of: date) -> bool:
    return assignment.status == AssignmentStatus.ACTIVE and assignment.end_date < _as_day(as_of)


def current_utilization(
    engineer_id: str,
    assignments: Iterable[Assignment],
    max_capacity: int,
    as_of: Optional[date] = None,
) -> UtilizationResult:
    check_max_capacity(engineer_id, max_capacity)
    as_of = _as_day(as_of) if as_of is not None else date.today()

    current = [
        a for a in assignments
        if a.engineer_id == engineer_id and is_current(a, as_of)
    ]
    total = total_allocation(current)

    return UtilizationResult(
        engineer_id=engineer_id,
        as_of=as_of,
        max_capacity=max_capacity,
        total_allocation=total,
        available_capacity=max(0, max_capacity - total),
        utilization_rate=total / max_capacity,
        assignment_ids=tuple(sorted(str(a.id) for a in current)),
    )


def classify_utilization(total: int, max_capacity: int, at_threshold: float) -> str:
    """
    - OVER CAPACITY when the total exceeds max capacity
    - AT CAPACITY when utilization >= at_threshold
    - UNDER (GAP) otherwise
    """
    if total > max_capacity:
        return "OVER CAPACITY"
    if max_capacity and total / max_capacity >= at_threshold:
        return "AT CAPACITY"
    return "UNDER (GAP)"


# ----------------------------
# Status lifecycle
# ----------------------------

ALLOWED_TRANSITIONS: Dict[AssignmentStatus, FrozenSet[AssignmentStatus]] = {
    AssignmentStatus.PLANNED: frozenset({AssignmentStatus.ACTIVE, AssignmentStatus.CANCELLED}),
    AssignmentStatus.ACTIVE: frozenset({AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED}),
    AssignmentStatus.COMPLETED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}


def parse_status(current: AssignmentStatus, value) -> AssignmentStatus:
    """Accept an AssignmentStatus or its string value ("cancelled")."""
    try:
        return AssignmentStatus(value)
    except (TypeError, ValueError):
        raise InvalidStatusTransitionError(current.value, value) from None


def transition_status(current: AssignmentStatus, target) -> AssignmentStatus:
    target = parse_status(current, target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)
    return target
