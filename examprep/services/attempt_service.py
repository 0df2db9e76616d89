"""Attempt orchestration: the operations the HTTP layer calls.

Starting, answering, finalizing and reading results of attempts. Coordinates
the content store, the attempt state machine, the answer ledger and grading.
Every operation runs to completion synchronously and reports ownership and
state violations as typed errors.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from examprep.errors import (
    AttemptNotActiveError,
    ForbiddenError,
    InactiveTestError,
    InvalidStateError,
    NotFoundError,
)
from examprep.models.content import QuestionDefinition, TestDefinition
from examprep.models.db.attempt import Attempt, AttemptAnswer, AttemptStatus
from examprep.models.db.content import Test
from examprep.models.db.user import ELEVATED_ROLES
from examprep.services import content_service, grading_service, ledger_service
from examprep.services.attempt_state import AttemptStateMachine
from examprep.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


class Notifier(Protocol):
    """Delivery channel for user-facing notifications."""

    def notify(self, user_id: int, title: str, message: str, kind: str = "info") -> None:
        ...


@dataclass(frozen=True)
class Caller:
    """Identity and role of the authenticated user making a request."""

    user_id: int
    role: str

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


@dataclass(frozen=True)
class QuestionGrade:
    """Grading outcome for one question of a finalized attempt."""

    question_id: int
    section_id: int
    question_type: str
    submitted_answer: str | None
    is_correct: bool
    points_awarded: Decimal
    max_points: Decimal


@dataclass(frozen=True)
class AttemptResult:
    """Aggregate outcome of finalizing an attempt."""

    attempt: Attempt
    score_percentage: Decimal
    points_awarded: Decimal
    max_points: Decimal
    breakdown: tuple[QuestionGrade, ...]


@dataclass(frozen=True)
class ResultEntry:
    """One question of an attempt with the stored answer (if any)."""

    section_id: int
    question: QuestionDefinition
    answer: AttemptAnswer | None


@dataclass(frozen=True)
class AttemptResults:
    """Everything needed to display an attempt's results."""

    attempt: Attempt
    test: TestDefinition
    entries: list[ResultEntry]


def score_percentage(points_awarded: Decimal, max_points: Decimal) -> Decimal:
    """Percentage of points earned, rounded to cents; 0 when nothing is gradable."""
    if max_points <= 0:
        return ZERO
    return (points_awarded / max_points * HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


class AttemptOrchestrator:
    """Facade over the attempt lifecycle for a single database session."""

    def __init__(
        self,
        db: DbSession,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.state = AttemptStateMachine(db, clock)

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    @staticmethod
    def _require_owner(caller: Caller, attempt: Attempt) -> None:
        if attempt.user_id != caller.user_id:
            raise ForbiddenError("You do not own this attempt")

    @staticmethod
    def _require_reader(caller: Caller, attempt: Attempt) -> None:
        if attempt.user_id != caller.user_id and not caller.is_elevated:
            raise ForbiddenError("You are not allowed to view this attempt")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_attempt(self, caller: Caller, test_id: str) -> Attempt:
        """Start a timed attempt at a published test."""
        test = content_service.get_test(self.db, test_id)
        now = self.clock()
        if not test.is_published(now):
            raise InactiveTestError()

        # An attempt left running past its deadline is submitted, not blocking
        existing = self.state.find_active(caller.user_id, test.id)
        if existing is not None and self.state.is_timed_out(existing, now):
            self.expire_if_timed_out(existing.id, now)

        return self.state.start(caller.user_id, test)

    def submit_answer(
        self,
        caller: Caller,
        attempt_id: str,
        question_id: int,
        submitted_answer: str | None,
    ) -> AttemptAnswer:
        """
        Store (or replace) the caller's answer to one question.
        Grading is deferred to finalization.
        """
        attempt = self.state.get(attempt_id)
        self._require_owner(caller, attempt)

        if attempt.is_in_progress:
            now = self.clock()
            if self.state.is_timed_out(attempt, now):
                self.expire_if_timed_out(attempt_id, now)
                raise AttemptNotActiveError(
                    "Time is up for this attempt; it has been submitted"
                )

            snapshot = self.state.snapshot(attempt)
            if snapshot.find_question(question_id) is None:
                content_service.get_question(self.db, question_id)
                raise NotFoundError("Question is not part of this test")

        return ledger_service.put(self.db, attempt, question_id, submitted_answer)

    def finalize_attempt(self, caller: Caller, attempt_id: str) -> AttemptResult:
        """
        Complete the attempt and grade every question of the test.
        Finalizing an already completed attempt returns the stored result.
        """
        attempt = self.state.get(attempt_id)
        self._require_owner(caller, attempt)

        if attempt.is_completed:
            return self._stored_result(attempt)

        try:
            self.state.finalize(attempt_id)
        except InvalidStateError:
            self.db.rollback()
            attempt = self.state.get(attempt_id)
            if attempt.is_completed:
                # Another request finalized it between our read and the swap
                return self._stored_result(attempt)
            logger.error(
                "Refusing to finalize attempt %s in status %s", attempt_id, attempt.status
            )
            raise

        return self._complete(attempt_id)

    def expire_if_timed_out(
        self,
        attempt_id: str,
        now: datetime | None = None,
        caller: Caller | None = None,
    ) -> bool:
        """
        Force-finalize the attempt once its duration has elapsed.

        Safe to call repeatedly from the client timer or the server sweep.
        Returns True only when this call submitted the attempt.
        """
        if caller is not None:
            self._require_owner(caller, self.state.get(attempt_id))

        if not self.state.expire_if_timed_out(attempt_id, now):
            return False
        self._complete(attempt_id)
        return True

    def get_attempt(self, caller: Caller, attempt_id: str) -> Attempt:
        attempt = self.state.get(attempt_id)
        self._require_reader(caller, attempt)
        return attempt

    def get_results(self, caller: Caller, attempt_id: str) -> AttemptResults:
        """Assemble the per-question breakdown for the owner or a teacher/admin."""
        attempt = self.get_attempt(caller, attempt_id)
        snapshot = self.state.snapshot(attempt)
        answers = {
            answer.question_id: answer
            for answer in ledger_service.get_all(self.db, attempt_id)
        }
        entries = [
            ResultEntry(section_id=section.id, question=question, answer=answers.get(question.id))
            for section, question in snapshot.iter_questions()
        ]
        return AttemptResults(attempt=attempt, test=snapshot, entries=entries)

    def list_attempts(self, caller: Caller, limit: int = 100) -> list[tuple[Attempt, str]]:
        """Caller's attempts with their test names, newest first."""
        rows = self.db.execute(
            select(Attempt, Test.name)
            .join(Test, Test.id == Attempt.test_id)
            .where(Attempt.user_id == caller.user_id)
            .order_by(Attempt.started_at.desc())
            .limit(limit)
        ).all()
        return [(attempt, name) for attempt, name in rows]

    def abandon_attempt(self, caller: Caller, attempt_id: str) -> Attempt:
        """Administrative abandon of an in-progress attempt."""
        if not caller.is_elevated:
            raise ForbiddenError("Only teachers and admins can abandon attempts")
        self.state.get(attempt_id)
        return self.state.abandon(attempt_id)

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Submit every in-progress attempt that has run out of time."""
        now = now or self.clock()
        candidates = self.db.execute(
            select(Attempt.id).where(Attempt.status == AttemptStatus.IN_PROGRESS.value)
        ).scalars().all()

        expired = 0
        for attempt_id in candidates:
            try:
                if self.expire_if_timed_out(attempt_id, now):
                    expired += 1
            except Exception:
                # One broken attempt must not stop the rest of the pass
                self.db.rollback()
                logger.exception("Could not expire attempt %s", attempt_id)
        if expired:
            logger.info("Expiry sweep submitted %d attempts", expired)
        return expired

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    def _complete(self, attempt_id: str) -> AttemptResult:
        """Grade a just-transitioned attempt, commit, and notify its owner."""
        attempt = self.state.get(attempt_id)
        snapshot = self.state.snapshot(attempt)
        self._grade(attempt, snapshot)
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            "Attempt %s completed: score=%s%% (%s/%s)",
            attempt.id,
            attempt.score,
            attempt.points_awarded,
            attempt.max_points,
        )
        self._notify_completion(attempt, snapshot)
        return self._stored_result(attempt)

    def _grade(self, attempt: Attempt, snapshot: TestDefinition) -> None:
        answers = {
            answer.question_id: answer
            for answer in ledger_service.get_all(self.db, attempt.id)
        }

        points_awarded = ZERO
        max_points = ZERO
        for _, question in snapshot.iter_questions():
            answer = answers.get(question.id)
            submitted = answer.submitted_answer if answer is not None else None
            grade = grading_service.grade(question, submitted)

            points_awarded += grade.points_awarded
            max_points += question.points
            if answer is not None:
                answer.is_correct = grade.is_correct
                answer.points_awarded = grade.points_awarded

        attempt.points_awarded = points_awarded
        attempt.max_points = max_points
        attempt.score = score_percentage(points_awarded, max_points)

    def _stored_result(self, attempt: Attempt) -> AttemptResult:
        """Rebuild the finalize result from persisted grading data."""
        snapshot = self.state.snapshot(attempt)
        answers = {
            answer.question_id: answer
            for answer in ledger_service.get_all(self.db, attempt.id)
        }

        breakdown = []
        for section, question in snapshot.iter_questions():
            answer = answers.get(question.id)
            breakdown.append(
                QuestionGrade(
                    question_id=question.id,
                    section_id=section.id,
                    question_type=question.type,
                    submitted_answer=answer.submitted_answer if answer is not None else None,
                    is_correct=bool(answer is not None and answer.is_correct),
                    points_awarded=Decimal(answer.points_awarded) if answer is not None else ZERO,
                    max_points=question.points,
                )
            )

        return AttemptResult(
            attempt=attempt,
            score_percentage=Decimal(attempt.score if attempt.score is not None else ZERO),
            points_awarded=Decimal(attempt.points_awarded or ZERO),
            max_points=Decimal(attempt.max_points or ZERO),
            breakdown=tuple(breakdown),
        )

    def _notify_completion(self, attempt: Attempt, snapshot: TestDefinition) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(
                attempt.user_id,
                "Test Completed",
                f'You have completed "{snapshot.name}" with a score of {attempt.score:.2f}%',
                "info",
            )
        except Exception:
            logger.exception("Failed to notify user %s about attempt %s", attempt.user_id, attempt.id)
