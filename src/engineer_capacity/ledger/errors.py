"""
Ledger error taxonomy.

Every error is recoverable at the call site: the assignment write path
rejects the write and reports the reason. ``status_code`` is the
HTTP-equivalent the surrounding CRUD layer should answer with.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from engineer_capacity.ledger.capacity_models import Assignment


class CapacityLedgerError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "status_code": self.status_code,
        }


class InvalidIntervalError(CapacityLedgerError):
    def __init__(self, start, end):
        super().__init__(f"End date must be after start date (start={start}, end={end})")
        self.start = start
        self.end = end


class InvalidAllocationError(CapacityLedgerError):
    def __init__(self, allocation):
        super().__init__(
            f"Allocation percentage must be an integer between 1 and 100 (got {allocation!r})"
        )
        self.allocation = allocation


class InvalidCapacityConfigError(CapacityLedgerError):
    def __init__(self, engineer_id, max_capacity):
        super().__init__(
            f"Engineer {engineer_id} has invalid max capacity {max_capacity!r}; "
            "expected a positive integer percentage"
        )
        self.engineer_id = engineer_id
        self.max_capacity = max_capacity


class UnknownEngineerError(CapacityLedgerError):
    status_code = 404

    def __init__(self, engineer_id):
        super().__init__(f"Engineer not found: {engineer_id}")
        self.engineer_id = engineer_id


class AssignmentNotFoundError(CapacityLedgerError):
    status_code = 404

    def __init__(self, assignment_id):
        super().__init__(f"Assignment not found: {assignment_id}")
        self.assignment_id = assignment_id


class InvalidStatusTransitionError(CapacityLedgerError):
    def __init__(self, current, target):
        super().__init__(f"Cannot move assignment from {current} to {target}")
        self.current = current
        self.target = target


class CapacityExceededError(CapacityLedgerError):
    """
    The prospective allocation would push the engineer past max capacity.

    ``current`` is the summed allocation of the overlapping assignments
    without the new one; ``conflicts`` are those assignments.
    """

    def __init__(
        self,
        engineer_id,
        current: int,
        requested: int,
        max_capacity: int,
        conflicts: Optional[List["Assignment"]] = None,
    ):
        super().__init__(
            f"Engineer {engineer_id} allocation would exceed {max_capacity}% "
            f"(current: {current}%, requested: {requested}%, "
            f"total: {current + requested}%)"
        )
        self.engineer_id = engineer_id
        self.current = current
        self.requested = requested
        self.max_capacity = max_capacity
        self.conflicts = list(conflicts or [])

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "current": self.current,
                "requested": self.requested,
                "max": self.max_capacity,
                "conflicts": [
                    {
                        "assignment_id": a.id,
                        "project_id": a.project_id,
                        "project_name": a.project_name,
                        "start_date": a.start_date.isoformat(),
                        "end_date": a.end_date.isoformat(),
                        "allocation": a.allocation_percentage,
                    }
                    for a in self.conflicts
                ],
            }
        )
        return payload
