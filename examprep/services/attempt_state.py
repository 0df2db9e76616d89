"""Lifecycle of a single test attempt.

    in_progress --finalize--> completed
    in_progress --abandon---> abandoned

Both terminal states are final. Transitions are compare-and-swap updates on
the status column, so of two concurrent callers exactly one wins. The state
machine flushes but never commits a finalize: the caller grades inside the
same transaction and commits once.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from examprep.errors import DuplicateAttemptError, InvalidStateError, NotFoundError
from examprep.models.content import TestDefinition
from examprep.models.db.attempt import Attempt, AttemptStatus
from examprep.utils.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


class AttemptStateMachine:
    """Creates attempts and moves them between statuses."""

    def __init__(self, db: DbSession, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.clock = clock

    def get(self, attempt_id: str) -> Attempt:
        attempt = self.db.get(Attempt, attempt_id, populate_existing=True)
        if attempt is None:
            raise NotFoundError("Attempt not found")
        return attempt

    def find_active(self, user_id: int, test_id: str) -> Attempt | None:
        """In-progress attempt of this user for this test, if any."""
        return self.db.execute(
            select(Attempt).where(
                Attempt.user_id == user_id,
                Attempt.test_id == test_id,
                Attempt.status == AttemptStatus.IN_PROGRESS.value,
            )
        ).scalar_one_or_none()

    @staticmethod
    def snapshot(attempt: Attempt) -> TestDefinition:
        """Test definition captured when the attempt started."""
        return TestDefinition.model_validate_json(attempt.snapshot_json)

    @staticmethod
    def deadline(attempt: Attempt) -> datetime:
        return as_utc(attempt.started_at) + timedelta(minutes=attempt.duration_minutes)

    def is_timed_out(self, attempt: Attempt, now: datetime | None = None) -> bool:
        """True once the full test duration has elapsed (boundary included)."""
        now = as_utc(now or self.clock())
        return now >= self.deadline(attempt)

    def start(self, user_id: int, test: TestDefinition) -> Attempt:
        """
        Create a new in-progress attempt with a snapshot of the test.

        The lookup below gives a readable error with the existing attempt id;
        the partial unique index on (user_id, test_id) is what makes the
        check-and-create atomic under concurrency.
        """
        existing = self.find_active(user_id, test.id)
        if existing is not None:
            raise DuplicateAttemptError(
                f"Attempt {existing.id} is already in progress for this test",
                attempt_id=existing.id,
            )

        attempt = Attempt(
            id=uuid.uuid4().hex,
            user_id=user_id,
            test_id=test.id,
            started_at=self.clock(),
            duration_minutes=test.duration_minutes,
            status=AttemptStatus.IN_PROGRESS.value,
            snapshot_json=test.model_dump_json(),
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "Race condition detected starting test %s for user %s",
                test.id,
                user_id,
            )
            existing = self.find_active(user_id, test.id)
            raise DuplicateAttemptError(
                attempt_id=existing.id if existing is not None else None
            )

        self.db.refresh(attempt)
        logger.info(
            "Attempt %s started: user=%s test=%s duration=%smin",
            attempt.id,
            user_id,
            test.id,
            attempt.duration_minutes,
        )
        return attempt

    def _transition(self, attempt_id: str, status: AttemptStatus) -> bool:
        """Move an in-progress attempt to a terminal status; False if it was not in progress."""
        result = self.db.execute(
            update(Attempt)
            .where(
                Attempt.id == attempt_id,
                Attempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(status=status.value, finished_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def finalize(self, attempt_id: str) -> Attempt:
        """in_progress -> completed. Left uncommitted for the grading pass."""
        if not self._transition(attempt_id, AttemptStatus.COMPLETED):
            attempt = self.get(attempt_id)
            raise InvalidStateError(f"Cannot finalize an attempt that is {attempt.status}")
        return self.get(attempt_id)

    def expire_if_timed_out(self, attempt_id: str, now: datetime | None = None) -> bool:
        """
        Finalize the attempt if its duration has elapsed.

        Returns True only for the call that performed the transition; calls
        before the deadline, on terminal attempts, or losing a race are no-ops.
        """
        attempt = self.get(attempt_id)
        if not attempt.is_in_progress or not self.is_timed_out(attempt, now):
            return False
        if not self._transition(attempt_id, AttemptStatus.COMPLETED):
            return False
        logger.info("Attempt %s timed out; forcing finalize", attempt_id)
        return True

    def abandon(self, attempt_id: str) -> Attempt:
        """in_progress -> abandoned (administrative action)."""
        if not self._transition(attempt_id, AttemptStatus.ABANDONED):
            attempt = self.get(attempt_id)
            raise InvalidStateError(f"Cannot abandon an attempt that is {attempt.status}")
        self.db.commit()
        logger.info("Attempt %s abandoned", attempt_id)
        return self.get(attempt_id)
