import argparse
import sys
from datetime import date, datetime
from typing import List, Optional

from engineer_capacity.capacity_reporting.assignment_usecase import (
    check_conflicts,
    validate_prospective_assignment,
)
from engineer_capacity.capacity_reporting.forecast_usecase import run_capacity_forecast
from engineer_capacity.capacity_reporting.utilization_usecase import (
    run_team_utilization_report,
    utilization_frame,
)
from engineer_capacity.data.store import init_db
from engineer_capacity.ledger.errors import CapacityExceededError, CapacityLedgerError
from engineer_capacity.presentation.console import (
    render_capacity_exceeded,
    render_capacity_forecast,
    render_conflicts,
    render_team_utilization,
)
from engineer_capacity.utils.logger import get_logger

logger = get_logger(__name__)


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="engineer-capacity",
        description="Engineer capacity ledger: utilization, forecast and allocation checks",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the ledger tables")

    util = sub.add_parser("utilization", help="Team utilization snapshot")
    util.add_argument("--as-of", type=_parse_date, default=None, help="Day to report (YYYY-MM-DD). Defaults to today.")
    util.add_argument("--department", default=None, help="Only engineers in this department")
    util.add_argument("--csv", dest="csv_path", default=None, help="Also write engineer rows to this CSV file")

    fc = sub.add_parser("forecast", help="Weekly capacity forecast")
    fc.add_argument("--weeks", type=int, default=None, help="Number of weeks (default from FORECAST_WEEKS)")
    fc.add_argument("--start-date", type=_parse_date, default=None, help="First day of week 1 (YYYY-MM-DD)")

    for name, help_text in (
        ("conflicts", "List assignments overlapping a date range"),
        ("validate", "Check whether a new allocation fits"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--engineer", required=True, help="Engineer id")
        p.add_argument("--start", type=_parse_date, required=True, help="Start date (YYYY-MM-DD)")
        p.add_argument("--end", type=_parse_date, required=True, help="End date (YYYY-MM-DD)")
        p.add_argument("--exclude", default=None, help="Assignment id to ignore (editing in place)")
        if name == "validate":
            p.add_argument("--allocation", type=int, required=True, help="Allocation percentage (1-100)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command == "init-db":
            init_db()
            print("Database initialised")

        elif args.command == "utilization":
            result = run_team_utilization_report(as_of=args.as_of, department=args.department)
            print(render_team_utilization(result), end="")
            if args.csv_path:
                utilization_frame(result).to_csv(args.csv_path, index=False)
                print(f"Wrote {len(result.engineers)} rows to {args.csv_path}")

        elif args.command == "forecast":
            result = run_capacity_forecast(weeks=args.weeks, start_date=args.start_date)
            print(render_capacity_forecast(result), end="")

        elif args.command == "conflicts":
            report = check_conflicts(args.engineer, args.start, args.end, args.exclude)
            print(render_conflicts(report), end="")

        elif args.command == "validate":
            validate_prospective_assignment(
                args.engineer, args.start, args.end, args.allocation, args.exclude
            )
            print(f"OK: {args.allocation}% fits for {args.engineer} ({args.start} -> {args.end})")

    except CapacityExceededError as exc:
        print(render_capacity_exceeded(exc), end="")
        return 1
    except CapacityLedgerError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
