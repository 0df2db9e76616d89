from datetime import timedelta

import pytest
from sqlalchemy import func, select

from examprep.errors import DuplicateAttemptError, InvalidStateError, NotFoundError
from examprep.models.db.attempt import Attempt, AttemptStatus
from examprep.services.attempt_state import AttemptStateMachine


@pytest.fixture
def machine(db, clock) -> AttemptStateMachine:
    return AttemptStateMachine(db, clock)


@pytest.fixture
def timed_test(make_test, questions):
    return make_test(questions.fill_in(), duration_minutes=20)


def test_start_creates_in_progress_attempt(machine, clock, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)

    assert attempt.status == AttemptStatus.IN_PROGRESS.value
    assert attempt.user_id == student.id
    assert attempt.test_id == timed_test.id
    assert attempt.finished_at is None
    assert attempt.score is None
    assert attempt.duration_minutes == 20
    assert machine.deadline(attempt) == clock.now + timedelta(minutes=20)


def test_start_snapshots_timed_test(machine, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)
    assert machine.snapshot(attempt) == timed_test


def test_second_start_is_rejected(db, machine, student, timed_test) -> None:
    first = machine.start(student.id, timed_test)

    with pytest.raises(DuplicateAttemptError) as exc_info:
        machine.start(student.id, timed_test)

    assert exc_info.value.attempt_id == first.id
    count = db.execute(select(func.count(Attempt.id))).scalar_one()
    assert count == 1


def test_unique_index_blocks_racing_insert(machine, student, timed_test, monkeypatch) -> None:
    """A start that slips past the lookup still hits the partial unique index."""
    first = machine.start(student.id, timed_test)
    monkeypatch.setattr(machine, "find_active", lambda user_id, test_id: None)

    with pytest.raises(DuplicateAttemptError):
        machine.start(student.id, timed_test)

    assert machine.get(first.id).is_in_progress


def test_start_allowed_after_finalize(db, machine, student, timed_test) -> None:
    first = machine.start(student.id, timed_test)
    machine.finalize(first.id)
    db.commit()

    second = machine.start(student.id, timed_test)
    assert second.id != first.id


def test_finalize_sets_end_time(db, machine, clock, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)
    clock.advance(minutes=5)

    finalized = machine.finalize(attempt.id)
    db.commit()

    assert finalized.status == AttemptStatus.COMPLETED.value
    assert finalized.finished_at is not None


@pytest.mark.parametrize("first", ["finalize", "abandon"])
def test_terminal_states_are_final(db, machine, student, timed_test, first: str) -> None:
    attempt = machine.start(student.id, timed_test)
    getattr(machine, first)(attempt.id)
    db.commit()

    with pytest.raises(InvalidStateError):
        machine.finalize(attempt.id)
    with pytest.raises(InvalidStateError):
        machine.abandon(attempt.id)


def test_get_unknown_attempt(machine) -> None:
    with pytest.raises(NotFoundError):
        machine.get("missing")


def test_expire_before_deadline_is_noop(machine, clock, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)
    clock.advance(minutes=19, seconds=59)

    assert machine.expire_if_timed_out(attempt.id) is False
    assert machine.get(attempt.id).is_in_progress


def test_expire_exactly_at_deadline(db, machine, clock, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)
    clock.advance(minutes=20)

    assert machine.expire_if_timed_out(attempt.id) is True
    db.commit()
    assert machine.get(attempt.id).is_completed
    assert machine.expire_if_timed_out(attempt.id) is False


def test_expire_leaves_abandoned_attempt_alone(machine, clock, student, timed_test) -> None:
    attempt = machine.start(student.id, timed_test)
    machine.abandon(attempt.id)
    clock.advance(hours=1)

    assert machine.expire_if_timed_out(attempt.id) is False
    assert machine.get(attempt.id).status == AttemptStatus.ABANDONED.value
