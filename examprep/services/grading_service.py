"""Grading of a single submitted answer.

Grading is a pure function of the question definition and the submitted
answer string. There is no partial credit: a correct answer earns the
question's full point value, anything else earns zero.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from examprep.models.content import QuestionDefinition
from examprep.models.db.content import QuestionType

logger = logging.getLogger(__name__)

ZERO_POINTS = Decimal("0.00")


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one question."""

    is_correct: bool
    points_awarded: Decimal


INCORRECT = GradeResult(is_correct=False, points_awarded=ZERO_POINTS)


def normalize_fill_in(value: str) -> str:
    """Normalization applied to both sides of a fill-in-blank comparison.

    Case-folding only: surrounding whitespace and punctuation are significant.
    """
    return value.casefold()


def _is_multiple_choice_correct(question: QuestionDefinition, answer: str) -> bool | None:
    correct_ids = question.correct_option_ids()
    if len(correct_ids) != 1:
        logger.warning(
            "Question %s has %d options flagged correct; grading as incorrect",
            question.id,
            len(correct_ids),
        )
        return None
    return answer == correct_ids[0]


def _is_true_false_correct(question: QuestionDefinition, answer: str) -> bool | None:
    if not question.correct_answer:
        logger.warning(
            "True/false question %s has no correct answer; grading as incorrect",
            question.id,
        )
        return None
    return answer == question.correct_answer


def _is_fill_in_correct(question: QuestionDefinition, answer: str) -> bool | None:
    if not question.correct_answer:
        logger.warning(
            "Fill-in question %s has no correct answer; grading as incorrect",
            question.id,
        )
        return None
    return normalize_fill_in(answer) == normalize_fill_in(question.correct_answer)


_CHECKERS = {
    QuestionType.MULTIPLE_CHOICE.value: _is_multiple_choice_correct,
    QuestionType.TRUE_FALSE.value: _is_true_false_correct,
    QuestionType.FILL_IN.value: _is_fill_in_correct,
}


def grade(question: QuestionDefinition, submitted_answer: str | None) -> GradeResult:
    """Grade one submitted answer against its question.

    Unanswered questions (``None`` or empty string) are incorrect. Malformed
    question data is logged and graded incorrect rather than raised, so one
    broken question never blocks scoring of the rest of an attempt.
    """
    if not submitted_answer:
        return INCORRECT

    checker = _CHECKERS.get(question.type)
    if checker is None:
        logger.warning(
            "Question %s has unknown type %r; grading as incorrect",
            question.id,
            question.type,
        )
        return INCORRECT

    if not checker(question, submitted_answer):
        return INCORRECT
    return GradeResult(is_correct=True, points_awarded=question.points)
