"""Attempt endpoints: start, answer, submit, results."""
from typing import Annotated

from fastapi import APIRouter, Depends, status

from examprep.dependencies.auth import get_caller
from examprep.dependencies.services import get_orchestrator
from examprep.models import (
    AnswerRecordResponse,
    AnswerSubmitRequest,
    AttemptExpireResponse,
    AttemptFinalizeResponse,
    AttemptListItem,
    AttemptResponse,
    AttemptResultsResponse,
    AttemptStartRequest,
)
from examprep.models.attempts import (
    QuestionGradeResponse,
    ResultAnswer,
    ResultOption,
    ResultQuestion,
    ResultTest,
)
from examprep.models.db.attempt import Attempt, AttemptAnswer
from examprep.services.attempt_service import (
    AttemptOrchestrator,
    AttemptResult,
    AttemptResults,
    Caller,
)
from examprep.services.attempt_state import AttemptStateMachine
from examprep.utils import validate_id

router = APIRouter(prefix="/api", tags=["attempts"])


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


def attempt_to_response(attempt: Attempt) -> AttemptResponse:
    """Convert Attempt model to AttemptResponse."""
    return AttemptResponse(
        id=attempt.id,
        testId=attempt.test_id,
        userId=attempt.user_id,
        status=attempt.status,
        startedAt=attempt.started_at,
        finishedAt=attempt.finished_at,
        expiresAt=AttemptStateMachine.deadline(attempt),
        durationMinutes=attempt.duration_minutes,
        score=_optional_float(attempt.score),
        pointsAwarded=_optional_float(attempt.points_awarded),
        maxPoints=_optional_float(attempt.max_points),
    )


def _answer_to_response(answer: AttemptAnswer) -> AnswerRecordResponse:
    return AnswerRecordResponse(
        id=answer.id,
        attemptId=answer.attempt_id,
        questionId=answer.question_id,
        submittedAnswer=answer.submitted_answer,
        isCorrect=answer.is_correct,
        pointsAwarded=float(answer.points_awarded or 0),
        answeredAt=answer.answered_at,
    )


def _result_to_response(result: AttemptResult) -> AttemptFinalizeResponse:
    return AttemptFinalizeResponse(
        attempt=attempt_to_response(result.attempt),
        scorePercentage=float(result.score_percentage),
        pointsAwarded=float(result.points_awarded),
        maxPoints=float(result.max_points),
        breakdown=[
            QuestionGradeResponse(
                questionId=grade.question_id,
                sectionId=grade.section_id,
                questionType=grade.question_type,
                submittedAnswer=grade.submitted_answer,
                isCorrect=grade.is_correct,
                pointsAwarded=float(grade.points_awarded),
                maxPoints=float(grade.max_points),
            )
            for grade in result.breakdown
        ],
    )


def _results_to_response(results: AttemptResults) -> AttemptResultsResponse:
    """Build the results view; the answer key stays hidden until the attempt is over."""
    reveal = not results.attempt.is_in_progress
    answers = []
    for entry in results.entries:
        question = entry.question
        answer = entry.answer
        answers.append(
            ResultAnswer(
                questionId=question.id,
                submittedAnswer=answer.submitted_answer if answer else None,
                isCorrect=answer.is_correct if answer and reveal else None,
                pointsAwarded=float(answer.points_awarded or 0) if answer else 0.0,
                answeredAt=answer.answered_at if answer else None,
                question=ResultQuestion(
                    id=question.id,
                    sectionId=entry.section_id,
                    type=question.type,
                    text=question.text,
                    points=float(question.points),
                    correctAnswer=question.correct_answer if reveal else None,
                    solutionText=question.solution_text if reveal else None,
                    options=[
                        ResultOption(
                            id=option.id,
                            text=option.text,
                            isCorrect=option.is_correct if reveal else None,
                        )
                        for option in question.options
                    ],
                ),
            )
        )

    return AttemptResultsResponse(
        attempt=attempt_to_response(results.attempt),
        test=ResultTest(
            id=results.test.id,
            name=results.test.name,
            description=results.test.description,
            durationMinutes=results.test.duration_minutes,
        ),
        answers=answers,
    )


@router.post(
    "/attempts", response_model=AttemptResponse, status_code=status.HTTP_201_CREATED
)
def start_attempt(
    payload: AttemptStartRequest,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AttemptResponse:
    """Start a timed attempt at a test."""
    test_id = validate_id("testId", payload.testId)
    attempt = orchestrator.start_attempt(caller, test_id)
    return attempt_to_response(attempt)


@router.post(
    "/answers", response_model=AnswerRecordResponse, status_code=status.HTTP_201_CREATED
)
def submit_answer(
    payload: AnswerSubmitRequest,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AnswerRecordResponse:
    """Save or change the answer to one question."""
    attempt_id = validate_id("attemptId", payload.attemptId)
    answer = orchestrator.submit_answer(
        caller, attempt_id, payload.questionId, payload.answer
    )
    return _answer_to_response(answer)


@router.post("/attempts/{attempt_id}/submit", response_model=AttemptFinalizeResponse)
def finalize_attempt(
    attempt_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AttemptFinalizeResponse:
    """Submit the test and get the score (repeat calls return the same result)."""
    attempt_id = validate_id("attemptId", attempt_id)
    result = orchestrator.finalize_attempt(caller, attempt_id)
    return _result_to_response(result)


@router.post("/attempts/{attempt_id}/expire", response_model=AttemptExpireResponse)
def expire_attempt(
    attempt_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AttemptExpireResponse:
    """Client timer reached zero: submit the attempt if its time is really up."""
    attempt_id = validate_id("attemptId", attempt_id)
    expired = orchestrator.expire_if_timed_out(attempt_id, caller=caller)
    attempt = orchestrator.get_attempt(caller, attempt_id)
    return AttemptExpireResponse(expired=expired, attempt=attempt_to_response(attempt))


@router.post("/attempts/{attempt_id}/abandon", response_model=AttemptResponse)
def abandon_attempt(
    attempt_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AttemptResponse:
    """Abandon an in-progress attempt (teachers and admins)."""
    attempt_id = validate_id("attemptId", attempt_id)
    attempt = orchestrator.abandon_attempt(caller, attempt_id)
    return attempt_to_response(attempt)


@router.get("/attempts/{attempt_id}/results", response_model=AttemptResultsResponse)
def get_results(
    attempt_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> AttemptResultsResponse:
    """Full per-question breakdown for the owner or a teacher/admin."""
    attempt_id = validate_id("attemptId", attempt_id)
    results = orchestrator.get_results(caller, attempt_id)
    return _results_to_response(results)


@router.get("/user/attempts", response_model=list[AttemptListItem])
def list_my_attempts(
    caller: Annotated[Caller, Depends(get_caller)],
    orchestrator: Annotated[AttemptOrchestrator, Depends(get_orchestrator)],
) -> list[AttemptListItem]:
    """The caller's attempts, newest first."""
    return [
        AttemptListItem(attempt=attempt_to_response(attempt), testName=test_name)
        for attempt, test_name in orchestrator.list_attempts(caller)
    ]
