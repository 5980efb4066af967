"""
Tests for the assignment write path against a SQLite ledger.

Verifies that rejected writes leave nothing behind, that updates are
re-validated without conflicting with themselves, and that concurrent
writers for one engineer cannot jointly exceed capacity.
"""

import threading
from datetime import date

import pytest

from engineer_capacity.capacity_reporting import assignment_usecase
from engineer_capacity.capacity_reporting.assignment_usecase import (
    cancel_assignment,
    check_conflicts,
    create_assignment,
    delete_assignment,
    transition_assignment,
    update_assignment,
    validate_prospective_assignment,
)
from engineer_capacity.data.assignments import (
    get_assignment,
    list_assignments_for_engineer,
    list_overlapping,
)
from engineer_capacity.data.engineers import add_engineer
from engineer_capacity.ledger.capacity_models import AssignmentStatus, Interval
from engineer_capacity.ledger.errors import (
    AssignmentNotFoundError,
    CapacityExceededError,
    InvalidAllocationError,
    InvalidCapacityConfigError,
    InvalidIntervalError,
    InvalidStatusTransitionError,
    UnknownEngineerError,
)


def d(month, day):
    return date(2026, month, day)


def create_x(**overrides):
    params = dict(
        engineer_id="eng-1",
        project_id="proj-x",
        allocation_percentage=60,
        start_date=d(1, 1),
        end_date=d(6, 30),
        status=AssignmentStatus.ACTIVE,
        assignment_id="x",
    )
    params.update(overrides)
    return create_assignment(**params)


class TestCreateAssignment:
    """Creating assignments through the capacity check."""

    def test_create_and_read_back(self, seeded_db):
        created = create_x()
        stored = get_assignment("x")
        assert stored.allocation_percentage == 60
        assert stored.start_date == d(1, 1)
        assert stored.end_date == d(6, 30)
        assert stored.status is AssignmentStatus.ACTIVE
        assert stored.project_name == "Billing Rewrite"
        assert created.id == "x"

    def test_generates_id(self, seeded_db):
        created = create_assignment("eng-1", "proj-x", 10, d(1, 1), d(1, 31))
        assert created.id
        assert get_assignment(created.id).status is AssignmentStatus.PLANNED

    def test_exactly_full_is_accepted(self, seeded_db):
        create_x()
        create_assignment("eng-1", "proj-y", 40, d(1, 15), d(5, 15), assignment_id="y")
        assert len(list_assignments_for_engineer("eng-1")) == 2

    def test_over_capacity_is_rejected_and_not_written(self, seeded_db):
        create_x()
        with pytest.raises(CapacityExceededError) as info:
            create_assignment("eng-1", "proj-y", 41, d(1, 15), d(5, 15), assignment_id="y")

        assert (info.value.current, info.value.requested, info.value.max_capacity) == (60, 41, 100)
        assert [a.id for a in list_assignments_for_engineer("eng-1")] == ["x"]

    def test_respects_engineer_max_capacity(self, seeded_db):
        create_assignment("eng-2", "proj-x", 50, d(1, 1), d(3, 31), assignment_id="g1")
        with pytest.raises(CapacityExceededError) as info:
            create_assignment("eng-2", "proj-y", 31, d(2, 1), d(2, 28))
        assert info.value.max_capacity == 80

    def test_non_overlapping_is_accepted(self, seeded_db):
        create_x(allocation_percentage=100)
        create_assignment("eng-1", "proj-y", 100, d(7, 1), d(12, 31))

    def test_touching_dates_conflict(self, seeded_db):
        create_x(allocation_percentage=100)
        with pytest.raises(CapacityExceededError):
            create_assignment("eng-1", "proj-y", 10, d(6, 30), d(12, 31))

    def test_cancelled_assignment_does_not_block(self, seeded_db):
        create_x(allocation_percentage=80, end_date=d(12, 31), status=AssignmentStatus.CANCELLED)
        create_assignment("eng-1", "proj-y", 100, d(3, 1), d(3, 31))

    def test_completed_status_skips_check(self, seeded_db):
        create_x(allocation_percentage=100)
        create_assignment(
            "eng-1", "proj-y", 100, d(3, 1), d(3, 31), status=AssignmentStatus.COMPLETED
        )

    def test_unknown_engineer(self, seeded_db):
        with pytest.raises(UnknownEngineerError) as info:
            create_assignment("nobody", "proj-x", 10, d(1, 1), d(1, 31))
        assert info.value.status_code == 404

    def test_misconfigured_engineer(self, seeded_db):
        add_engineer("eng-0", "No Capacity", max_capacity=0)
        with pytest.raises(InvalidCapacityConfigError):
            create_assignment("eng-0", "proj-x", 10, d(1, 1), d(1, 31))
        assert list_assignments_for_engineer("eng-0") == []

    def test_invalid_interval(self, seeded_db):
        with pytest.raises(InvalidIntervalError):
            create_assignment("eng-1", "proj-x", 10, d(2, 1), d(1, 1))

    def test_invalid_allocation(self, seeded_db):
        with pytest.raises(InvalidAllocationError):
            create_assignment("eng-1", "proj-x", 0, d(1, 1), d(1, 31))


class TestUpdateAssignment:
    """Updates re-validate capacity, excluding the assignment itself."""

    def test_unchanged_update_does_not_conflict_with_itself(self, seeded_db):
        create_x(allocation_percentage=100)
        updated = update_assignment("x", notes="same dates, same allocation")
        assert updated.notes == "same dates, same allocation"
        assert get_assignment("x").notes == "same dates, same allocation"

    def test_increase_within_capacity(self, seeded_db):
        create_x()
        update_assignment("x", allocation_percentage=100)
        assert get_assignment("x").allocation_percentage == 100

    def test_increase_over_capacity_keeps_old_row(self, seeded_db):
        create_x()
        create_assignment("eng-1", "proj-y", 40, d(2, 1), d(2, 28), assignment_id="y")
        with pytest.raises(CapacityExceededError):
            update_assignment("x", allocation_percentage=61)
        assert get_assignment("x").allocation_percentage == 60

    def test_moving_dates_into_conflict(self, seeded_db):
        create_x()
        create_assignment("eng-1", "proj-y", 60, d(8, 1), d(9, 30), assignment_id="y")
        with pytest.raises(CapacityExceededError):
            update_assignment("y", start_date=d(6, 30))
        assert get_assignment("y").start_date == d(8, 1)

    def test_inverted_dates(self, seeded_db):
        create_x()
        with pytest.raises(InvalidIntervalError):
            update_assignment("x", end_date=d(1, 1))

    def test_status_change_is_checked(self, seeded_db):
        create_x()
        with pytest.raises(InvalidStatusTransitionError):
            update_assignment("x", status=AssignmentStatus.PLANNED)

    def test_unknown_field(self, seeded_db):
        create_x()
        with pytest.raises(TypeError):
            update_assignment("x", hourly_rate=10)

    def test_missing_assignment(self, seeded_db):
        with pytest.raises(AssignmentNotFoundError):
            update_assignment("missing", notes="x")


class TestLifecycle:
    """Status transitions and removal."""

    def test_planned_to_active_to_completed(self, seeded_db):
        create_x(status=AssignmentStatus.PLANNED)
        assert transition_assignment("x", AssignmentStatus.ACTIVE).status is AssignmentStatus.ACTIVE
        transition_assignment("x", AssignmentStatus.COMPLETED)
        assert get_assignment("x").status is AssignmentStatus.COMPLETED

    def test_terminal_status_is_final(self, seeded_db):
        create_x()
        cancel_assignment("x")
        with pytest.raises(InvalidStatusTransitionError):
            transition_assignment("x", AssignmentStatus.ACTIVE)

    def test_cancel_frees_capacity(self, seeded_db):
        create_x(allocation_percentage=100)
        cancel_assignment("x")
        create_assignment("eng-1", "proj-y", 100, d(3, 1), d(3, 31))

    def test_delete_frees_capacity(self, seeded_db):
        create_x(allocation_percentage=100)
        delete_assignment("x")
        with pytest.raises(AssignmentNotFoundError):
            get_assignment("x")
        create_assignment("eng-1", "proj-y", 100, d(3, 1), d(3, 31))

    def test_delete_missing(self, seeded_db):
        with pytest.raises(AssignmentNotFoundError):
            delete_assignment("missing")


class TestConflictChecks:
    """Read-only conflict and validation checks."""

    def test_conflicts_after_end(self, seeded_db):
        create_x()
        report = check_conflicts("eng-1", d(7, 1), d(12, 31))
        assert not report.has_conflicts

    def test_conflicts_listed_in_start_order(self, seeded_db):
        create_assignment("eng-1", "proj-y", 20, d(3, 1), d(4, 30), assignment_id="late")
        create_x(allocation_percentage=30)
        report = check_conflicts("eng-1", d(3, 15), d(3, 20))
        assert [c.assignment_id for c in report.conflicts] == ["x", "late"]
        assert report.total_allocation == 50

    def test_conflicts_exclude(self, seeded_db):
        create_x()
        assert not check_conflicts("eng-1", d(1, 1), d(6, 30), exclude_assignment_id="x").has_conflicts

    def test_conflicts_unknown_engineer(self, seeded_db):
        with pytest.raises(UnknownEngineerError):
            check_conflicts("nobody", d(1, 1), d(1, 31))

    def test_validate_prospective(self, seeded_db):
        create_x()
        validate_prospective_assignment("eng-1", d(1, 15), d(5, 15), 40)
        with pytest.raises(CapacityExceededError):
            validate_prospective_assignment("eng-1", d(1, 15), d(5, 15), 41)
        # nothing was reserved
        assert len(list_overlapping("eng-1", Interval(d(1, 1), d(12, 31)))) == 1


class TestConcurrentWrites:
    """Two writers racing for the same engineer."""

    def test_only_one_of_two_racing_writes_lands(self, seeded_db):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker(assignment_id):
            barrier.wait()
            try:
                create_assignment(
                    "eng-1", "proj-x", 60, d(1, 1), d(6, 30), assignment_id=assignment_id
                )
                outcomes.append("ok")
            except CapacityExceededError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=worker, args=(f"race-{i}",)) for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["ok", "rejected"]
        assert len(list_assignments_for_engineer("eng-1")) == 1

    def test_update_does_not_revive_a_cancelled_assignment(self, seeded_db, monkeypatch):
        create_x()
        real_write = assignment_usecase.write_with_capacity_check

        def cancel_then_write(assignment, is_new, expected_status=None):
            cancel_assignment("x")
            return real_write(assignment, is_new, expected_status=expected_status)

        monkeypatch.setattr(assignment_usecase, "write_with_capacity_check", cancel_then_write)

        with pytest.raises(InvalidStatusTransitionError):
            update_assignment("x", notes="edit")

        stored = get_assignment("x")
        assert stored.status is AssignmentStatus.CANCELLED
        assert stored.notes is None

    def test_transition_checks_the_stored_status(self, seeded_db, monkeypatch):
        create_x()
        real_set_status = assignment_usecase.set_status

        def cancel_then_set(assignment_id, status, expected_status):
            real_set_status(assignment_id, AssignmentStatus.CANCELLED, expected_status=AssignmentStatus.ACTIVE)
            real_set_status(assignment_id, status, expected_status=expected_status)

        monkeypatch.setattr(assignment_usecase, "set_status", cancel_then_set)

        with pytest.raises(InvalidStatusTransitionError) as info:
            transition_assignment("x", AssignmentStatus.COMPLETED)

        assert info.value.current == "cancelled"
        assert get_assignment("x").status is AssignmentStatus.CANCELLED


class TestStatusValues:
    """Statuses given as their string values."""

    def test_update_accepts_status_string(self, seeded_db):
        create_x()
        assert update_assignment("x", status="cancelled").status is AssignmentStatus.CANCELLED
        assert get_assignment("x").status is AssignmentStatus.CANCELLED

    def test_update_same_status_string_is_not_a_transition(self, seeded_db):
        create_x()
        assert update_assignment("x", status="active", notes="n").status is AssignmentStatus.ACTIVE

    def test_unknown_status_string(self, seeded_db):
        create_x()
        with pytest.raises(InvalidStatusTransitionError):
            update_assignment("x", status="archived")
        assert get_assignment("x").status is AssignmentStatus.ACTIVE

    def test_transition_accepts_status_string(self, seeded_db):
        create_x(status=AssignmentStatus.PLANNED)
        assert transition_assignment("x", "active").status is AssignmentStatus.ACTIVE

    def test_create_accepts_status_string(self, seeded_db):
        create_x(status="planned")
        assert get_assignment("x").status is AssignmentStatus.PLANNED
