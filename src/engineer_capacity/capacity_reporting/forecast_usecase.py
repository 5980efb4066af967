"""
Weekly Capacity Forecast Use Case

Purpose:
- Project planned + active allocation forward N weeks, per engineer
- Each week reports the engineer's busiest day, so two back-to-back
  assignments inside one week are not double counted

Important:
- NOT a prediction; only committed assignments are counted
- Week 1 starts on start_date (default today), not on a Monday
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

from engineer_capacity.data.assignments import list_assignments
from engineer_capacity.data.engineers import list_engineers
from engineer_capacity.ledger.capacity_domain import (
    check_max_capacity,
    find_conflicts,
    peak_allocation,
)
from engineer_capacity.ledger.capacity_models import (
    CAPACITY_STATUSES,
    Assignment,
    CapacityForecast,
    Interval,
    WeeklyCapacity,
    WeeklyEngineerCapacity,
)
from engineer_capacity.ledger.errors import InvalidCapacityConfigError
from engineer_capacity.utils.config import config
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)


def run_capacity_forecast(
    weeks: Optional[int] = None,
    start_date: Optional[date] = None,
) -> CapacityForecast:
    weeks = config.FORECAST_WEEKS if weeks is None else weeks
    if weeks < 1:
        raise ValueError(f"weeks must be at least 1 (got {weeks})")

    start = start_date or date.today()
    end = start + timedelta(days=weeks * 7 - 1)

    logger.info("Running capacity forecast | start_date=%s | weeks=%s", start, weeks)

    engineers = []
    for eng in list_engineers():
        try:
            check_max_capacity(eng.id, eng.max_capacity)
        except InvalidCapacityConfigError as exc:
            logger.warning("Skipping engineer %s: %s", eng.id, exc.message)
            continue
        engineers.append(eng)

    by_engineer: Dict[str, List[Assignment]] = defaultdict(list)
    for a in list_assignments(interval=Interval(start, end), statuses=CAPACITY_STATUSES):
        by_engineer[a.engineer_id].append(a)

    forecast: List[WeeklyCapacity] = []

    for week in range(weeks):
        week_start = start + timedelta(days=week * 7)
        week_end = week_start + timedelta(days=6)
        window = Interval(week_start, week_end)

        weekly_engineers: List[WeeklyEngineerCapacity] = []
        for eng in engineers:
            own = by_engineer.get(eng.id, [])
            in_week = find_conflicts(eng.id, window, own)
            allocated = peak_allocation(eng.id, window, own)

            weekly_engineers.append(
                WeeklyEngineerCapacity(
                    engineer_id=eng.id,
                    engineer_name=eng.name,
                    max_capacity=eng.max_capacity,
                    allocated=allocated,
                    available=max(0, eng.max_capacity - allocated),
                    assignments=[
                        (a.project_name or a.project_id, a.allocation_percentage)
                        for a in in_week
                    ],
                )
            )

        forecast.append(
            WeeklyCapacity(
                week=week + 1,
                week_start=week_start,
                week_end=week_end,
                total_capacity=sum(e.max_capacity for e in weekly_engineers),
                total_allocated=sum(e.allocated for e in weekly_engineers),
                total_available=sum(e.available for e in weekly_engineers),
                engineers=weekly_engineers,
            )
        )

    weekly_pct = [
        (w.total_allocated / w.total_capacity * 100) if w.total_capacity else 0.0
        for w in forecast
    ]

    return CapacityForecast(
        start_date=start,
        end_date=end,
        weeks=weeks,
        forecast=forecast,
        average_utilization=round(sum(weekly_pct) / weeks),
        peak_utilization=round(max(weekly_pct)),
        low_utilization=round(min(weekly_pct)),
    )
