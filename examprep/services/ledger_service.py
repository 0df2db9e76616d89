"""Answer ledger: one stored answer per (attempt, question), last write wins."""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from examprep.errors import AttemptNotActiveError
from examprep.models.db.attempt import Attempt, AttemptAnswer, AttemptStatus
from examprep.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def _find_answer(db: DbSession, attempt_id: str, question_id: int) -> AttemptAnswer | None:
    return db.execute(
        select(AttemptAnswer).where(
            AttemptAnswer.attempt_id == attempt_id,
            AttemptAnswer.question_id == question_id,
        )
    ).scalar_one_or_none()


def _claim_attempt(db: DbSession, attempt_id: str) -> None:
    """
    Write-lock the attempt row for this transaction while it is still in progress.
    A finalize that commits first makes this fail; one that comes later waits for our commit.
    """
    result = db.execute(
        update(Attempt)
        .where(
            Attempt.id == attempt_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(last_answered_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AttemptNotActiveError()


def put(
    db: DbSession,
    attempt: Attempt,
    question_id: int,
    submitted_answer: str | None,
) -> AttemptAnswer:
    """
    Record or overwrite the answer for a question in an attempt.
    Grading fields are reset; they are only filled in at finalization.
    """
    if not attempt.is_in_progress:
        raise AttemptNotActiveError()

    attempt_id = attempt.id
    answer = _find_answer(db, attempt_id, question_id)
    _claim_attempt(db, attempt_id)
    if answer is None:
        answer = AttemptAnswer(attempt_id=attempt_id, question_id=question_id)
        db.add(answer)
        try:
            db.flush()
        except IntegrityError:
            # A concurrent submission created the row first; overwrite it
            db.rollback()
            logger.debug(
                "Concurrent answer insert for attempt %s question %s",
                attempt_id,
                question_id,
            )
            _claim_attempt(db, attempt_id)
            answer = _find_answer(db, attempt_id, question_id)

    answer.submitted_answer = submitted_answer
    answer.is_correct = None
    answer.points_awarded = 0
    answer.answered_at = utc_now()

    db.commit()
    db.refresh(answer)
    return answer


def get_all(db: DbSession, attempt_id: str) -> list[AttemptAnswer]:
    """Get all stored answers for an attempt (empty if none were submitted)."""
    return list(
        db.execute(
            select(AttemptAnswer).where(AttemptAnswer.attempt_id == attempt_id)
        ).scalars().all()
    )
