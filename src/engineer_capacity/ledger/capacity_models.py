"""
Capacity Ledger Models

Enterprise rules:
- No DB
- No formatting
- Pure data containers (the only check is interval ordering)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from engineer_capacity.ledger.errors import InvalidIntervalError


class AssignmentStatus(Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that consume capacity
CAPACITY_STATUSES = frozenset({AssignmentStatus.PLANNED, AssignmentStatus.ACTIVE})


# -------------------------------------------------
# Interval
# -------------------------------------------------

@dataclass(frozen=True)
class Interval:
    """Closed date interval ``[start, end]`` with ``end > start``."""

    start: date
    end: date

    def __post_init__(self):
        if self.start is None or self.end is None or self.end <= self.start:
            raise InvalidIntervalError(self.start, self.end)


# -------------------------------------------------
# Entities
# -------------------------------------------------

@dataclass(frozen=True)
class Engineer:
    id: str
    name: str
    max_capacity: Optional[int]
    department: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Assignment:
    id: str
    engineer_id: str
    project_id: str
    allocation_percentage: int
    start_date: date
    end_date: date
    status: AssignmentStatus = AssignmentStatus.PLANNED
    project_name: Optional[str] = None
    role: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.start_date is None or self.end_date is None or self.end_date <= self.start_date:
            raise InvalidIntervalError(self.start_date, self.end_date)

    @property
    def interval(self) -> Interval:
        return Interval(self.start_date, self.end_date)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


# -------------------------------------------------
# Utilization
# -------------------------------------------------

@dataclass(frozen=True)
class UtilizationResult:
    engineer_id: str
    as_of: date
    max_capacity: int
    total_allocation: int
    available_capacity: int
    utilization_rate: float
    assignment_ids: Tuple[str, ...] = ()


# -------------------------------------------------
# Conflicts
# -------------------------------------------------

@dataclass(frozen=True)
class ConflictEntry:
    assignment_id: str
    project_id: str
    project_name: Optional[str]
    start_date: date
    end_date: date
    allocation: int
    status: AssignmentStatus


@dataclass(frozen=True)
class ConflictReport:
    engineer_id: str
    interval: Interval
    conflicts: List[ConflictEntry] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def total_allocation(self) -> int:
        return sum(c.allocation for c in self.conflicts)


# -------------------------------------------------
# Team utilization (engineer rollup + summary)
# -------------------------------------------------

@dataclass(frozen=True)
class EngineerUtilization:
    engineer_id: str
    name: str
    department: Optional[str]
    max_capacity: int
    total_allocation: int
    available_capacity: int
    utilization_rate: float
    status: str


@dataclass(frozen=True)
class TeamUtilizationSummary:
    report_date: date
    as_of: date
    total_engineers: int
    total_capacity: int
    total_allocated: int
    team_utilization_rate: float
    available_capacity: int
    engineers_over: int
    engineers_at: int
    engineers_under: int


@dataclass(frozen=True)
class TeamUtilizationResult:
    summary: TeamUtilizationSummary
    engineers: List[EngineerUtilization]
    # Engineers skipped because their capacity record is unusable
    misconfigured: List[str] = field(default_factory=list)


# -------------------------------------------------
# Weekly forecast
# -------------------------------------------------

@dataclass(frozen=True)
class WeeklyEngineerCapacity:
    engineer_id: str
    engineer_name: str
    max_capacity: int
    allocated: int
    available: int
    assignments: List[Tuple[Optional[str], int]] = field(default_factory=list)


@dataclass(frozen=True)
class WeeklyCapacity:
    week: int
    week_start: date
    week_end: date
    total_capacity: int
    total_allocated: int
    total_available: int
    engineers: List[WeeklyEngineerCapacity]


@dataclass(frozen=True)
class CapacityForecast:
    start_date: date
    end_date: date
    weeks: int
    forecast: List[WeeklyCapacity]

    # Percentages over the whole period
    average_utilization: int
    peak_utilization: int
    low_utilization: int
