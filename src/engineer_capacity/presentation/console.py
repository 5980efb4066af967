from __future__ import annotations

import io
from typing import List, Sequence

from engineer_capacity.ledger.capacity_models import (
    CapacityForecast,
    ConflictReport,
    TeamUtilizationResult,
)
from engineer_capacity.ledger.errors import CapacityExceededError


def _is_numeric(value: object) -> bool:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return True
    return isinstance(value, str) and value.rstrip("%").replace(".", "", 1).lstrip("-").isdigit()


def _format_table(rows: Sequence[Sequence[object]], headers: List[str], max_rows: int | None = None) -> str:
    """
    Fixed-width text table. Numbers and percentages are right-aligned so
    allocation columns line up; everything else is left-aligned.
    """
    rows = [tuple(r) for r in rows]
    omitted = max(0, len(rows) - max_rows) if max_rows is not None else 0
    shown = rows[: len(rows) - omitted]

    cells = [[str(v) for v in r] for r in shown]
    widths = [
        max([len(h)] + [len(c[i]) for c in cells])
        for i, h in enumerate(headers)
    ]
    numeric = [
        bool(shown) and all(_is_numeric(r[i]) for r in shown)
        for i in range(len(headers))
    ]

    def line(values):
        return " ".join(
            v.rjust(w) if right else v.ljust(w)
            for v, w, right in zip(values, widths, numeric)
        ).rstrip()

    out = [line(headers), " ".join("-" * w for w in widths)]
    out.extend(line(c) for c in cells)
    if omitted:
        out.append(f"... ({omitted} more rows omitted) ...")

    return "\n".join(out) + "\n"


def render_team_utilization(result: TeamUtilizationResult) -> str:
    s = result.summary

    out = io.StringIO()

    print("\n" + "=" * 80, file=out)
    print("TEAM UTILIZATION REPORT", file=out)
    print("=" * 80, file=out)
    print(f"Report Date: {s.report_date.isoformat()}", file=out)
    print(f"As Of: {s.as_of.isoformat()}", file=out)
    print(f"Engineers: {s.total_engineers}", file=out)
    print(file=out)

    print(f"Team Capacity:      {s.total_capacity}%", file=out)
    print(f"Team Allocated:     {s.total_allocated}%", file=out)
    print(f"Team Utilization:   {s.team_utilization_rate:.1%}", file=out)
    print(f"Available Capacity: {s.available_capacity}%", file=out)
    print(file=out)

    print(f"Engineers OVER capacity:  {s.engineers_over}", file=out)
    print(f"Engineers AT capacity:    {s.engineers_at}", file=out)
    print(f"Engineers UNDER capacity: {s.engineers_under}", file=out)
    print(file=out)

    rows = [
        (
            r.name,
            r.department or "",
            r.max_capacity,
            r.total_allocation,
            r.available_capacity,
            f"{r.utilization_rate:.1%}",
            r.status,
        )
        for r in result.engineers
    ]
    print(
        _format_table(
            rows,
            ["engineer", "department", "max", "allocated", "available", "utilization", "status"],
            max_rows=200,
        ),
        file=out,
    )

    if result.misconfigured:
        print("WARNING: Engineers skipped (invalid max capacity):", file=out)
        for engineer_id in result.misconfigured:
            print(" -", repr(engineer_id), file=out)

    return out.getvalue()


def render_capacity_forecast(result: CapacityForecast) -> str:
    out = io.StringIO()

    print("\n" + "=" * 80, file=out)
    print(f"CAPACITY FORECAST — {result.start_date.isoformat()} -> {result.end_date.isoformat()}", file=out)
    print("=" * 80, file=out)
    print(f"Average Utilization: {result.average_utilization}%", file=out)
    print(f"Peak Utilization:    {result.peak_utilization}%", file=out)
    print(f"Low Utilization:     {result.low_utilization}%", file=out)
    print(file=out)

    rows = [
        (
            w.week,
            w.week_start.isoformat(),
            w.week_end.isoformat(),
            w.total_capacity,
            w.total_allocated,
            w.total_available,
            f"{(w.total_allocated / w.total_capacity):.1%}" if w.total_capacity else "N/A",
        )
        for w in result.forecast
    ]
    print(
        _format_table(rows, ["week", "start", "end", "capacity", "allocated", "available", "utilization"]),
        file=out,
    )

    return out.getvalue()


def render_conflicts(report: ConflictReport) -> str:
    out = io.StringIO()
    span = f"{report.interval.start.isoformat()} -> {report.interval.end.isoformat()}"

    if not report.has_conflicts:
        print(f"No conflicting assignments for {report.engineer_id} ({span})", file=out)
        return out.getvalue()

    print(
        f"{len(report.conflicts)} conflicting assignment(s) for {report.engineer_id} ({span}), "
        f"{report.total_allocation}% allocated:",
        file=out,
    )
    rows = [
        (
            c.assignment_id,
            c.project_name or c.project_id,
            c.start_date.isoformat(),
            c.end_date.isoformat(),
            f"{c.allocation}%",
            c.status.value,
        )
        for c in report.conflicts
    ]
    print(_format_table(rows, ["assignment", "project", "start", "end", "allocation", "status"]), file=out)
    return out.getvalue()


def render_capacity_exceeded(error: CapacityExceededError) -> str:
    out = io.StringIO()
    print(
        f"REJECTED: {error.engineer_id} is at {error.current}% in this window; "
        f"adding {error.requested}% would exceed the {error.max_capacity}% maximum "
        f"(total {error.current + error.requested}%).",
        file=out,
    )
    for a in error.conflicts:
        print(
            f"  • {a.project_name or a.project_id:<20} {a.start_date.isoformat()} -> "
            f"{a.end_date.isoformat()}  {a.allocation_percentage}%",
            file=out,
        )
    return out.getvalue()
