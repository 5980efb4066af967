"""
Team Utilization Use Case

Snapshot of each engineer's active allocation on one day, plus the
team rollup. Engineers with an unusable capacity record are listed
separately instead of failing the whole report.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from engineer_capacity.data.assignments import list_assignments, list_assignments_for_engineer
from engineer_capacity.data.engineers import get_max_capacity, list_engineers
from engineer_capacity.ledger.capacity_domain import classify_utilization, current_utilization
from engineer_capacity.ledger.capacity_models import (
    Assignment,
    AssignmentStatus,
    EngineerUtilization,
    TeamUtilizationResult,
    TeamUtilizationSummary,
    UtilizationResult,
)
from engineer_capacity.ledger.errors import InvalidCapacityConfigError
from engineer_capacity.utils.config import config
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)


def get_engineer_utilization(engineer_id: str, as_of: Optional[date] = None) -> UtilizationResult:
    max_capacity = get_max_capacity(engineer_id)
    active = list_assignments_for_engineer(engineer_id, statuses=[AssignmentStatus.ACTIVE])
    return current_utilization(engineer_id, active, max_capacity, as_of=as_of)


def run_team_utilization_report(
    as_of: Optional[date] = None,
    department: Optional[str] = None,
) -> TeamUtilizationResult:
    as_of = as_of or date.today()
    logger.info("Running team utilization report | as_of=%s department=%s", as_of, department)

    engineers = list_engineers(department=department)

    by_engineer: Dict[str, List[Assignment]] = defaultdict(list)
    for a in list_assignments(statuses=[AssignmentStatus.ACTIVE], as_of=as_of):
        by_engineer[a.engineer_id].append(a)

    rows: List[EngineerUtilization] = []
    misconfigured: List[str] = []

    for eng in engineers:
        try:
            u = current_utilization(eng.id, by_engineer.get(eng.id, []), eng.max_capacity, as_of=as_of)
        except InvalidCapacityConfigError as exc:
            logger.warning("Skipping engineer %s: %s", eng.id, exc.message)
            misconfigured.append(eng.id)
            continue

        rows.append(
            EngineerUtilization(
                engineer_id=eng.id,
                name=eng.name,
                department=eng.department,
                max_capacity=u.max_capacity,
                total_allocation=u.total_allocation,
                available_capacity=u.available_capacity,
                utilization_rate=u.utilization_rate,
                status=classify_utilization(
                    u.total_allocation, u.max_capacity, config.AT_CAPACITY_THRESHOLD
                ),
            )
        )

    rows_sorted = sorted(rows, key=lambda r: (-r.utilization_rate, r.name))

    total_capacity = sum(r.max_capacity for r in rows_sorted)
    total_allocated = sum(r.total_allocation for r in rows_sorted)

    engineers_over = sum(1 for r in rows_sorted if r.status == "OVER CAPACITY")
    engineers_at = sum(1 for r in rows_sorted if r.status == "AT CAPACITY")

    summary = TeamUtilizationSummary(
        report_date=date.today(),
        as_of=as_of,
        total_engineers=len(rows_sorted),
        total_capacity=total_capacity,
        total_allocated=total_allocated,
        team_utilization_rate=total_allocated / total_capacity if total_capacity else 0.0,
        available_capacity=sum(r.available_capacity for r in rows_sorted),
        engineers_over=engineers_over,
        engineers_at=engineers_at,
        engineers_under=len(rows_sorted) - engineers_over - engineers_at,
    )

    return TeamUtilizationResult(summary=summary, engineers=rows_sorted, misconfigured=misconfigured)


def utilization_frame(result: TeamUtilizationResult) -> pd.DataFrame:
    """Engineer rows as a DataFrame (CSV export)."""
    columns = [
        "engineer_id",
        "name",
        "department",
        "max_capacity",
        "total_allocation",
        "available_capacity",
        "utilization_rate",
        "status",
    ]
    df = pd.DataFrame([asdict(r) for r in result.engineers], columns=columns)
    df.insert(0, "as_of", result.summary.as_of.isoformat())
    return df
