"""Pytest configuration and fixtures for the capacity ledger test suite."""

import os
import sys
import tempfile
from datetime import date
from pathlib import Path

import pytest

# Keep log files out of the working tree; must happen before any package import
os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "engineer_capacity_test_logs"))

src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from sqlalchemy import create_engine  # noqa: E402

from engineer_capacity.data import store  # noqa: E402
from engineer_capacity.data.engineers import add_engineer, add_project  # noqa: E402
from engineer_capacity.ledger.capacity_models import Assignment, AssignmentStatus  # noqa: E402


@pytest.fixture
def ledger_db(tmp_path):
    """A fresh SQLite ledger wired in as the module engine."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    store.set_engine(engine)
    store.init_db()
    yield engine
    store.set_engine(None)
    engine.dispose()


@pytest.fixture
def seeded_db(ledger_db):
    """Two engineers and two projects."""
    add_engineer("eng-1", "Ada Lovelace", max_capacity=100, department="Platform")
    add_engineer("eng-2", "Grace Hopper", max_capacity=80, department="Data")
    add_project("proj-x", "Billing Rewrite")
    add_project("proj-y", "Search")
    return ledger_db


def make_assignment(
    assignment_id="a-1",
    engineer_id="eng-1",
    allocation=60,
    start=date(2026, 1, 1),
    end=date(2026, 6, 30),
    status=AssignmentStatus.ACTIVE,
    project_id="proj-x",
    project_name=None,
):
    return Assignment(
        id=assignment_id,
        engineer_id=engineer_id,
        project_id=project_id,
        allocation_percentage=allocation,
        start_date=start,
        end_date=end,
        status=status,
        project_name=project_name,
    )


@pytest.fixture
def assignment_factory():
    return make_assignment
