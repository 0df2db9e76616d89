"""Attempt-related Pydantic models."""
from datetime import datetime

from pydantic import BaseModel, Field


class AttemptStartRequest(BaseModel):
    """Model for starting an attempt."""

    testId: str = Field(..., min_length=1)


class AnswerSubmitRequest(BaseModel):
    """Model for submitting (or changing) an answer."""

    attemptId: str = Field(..., min_length=1)
    questionId: int
    answer: str | None = None


class AttemptResponse(BaseModel):
    """Attempt as returned to the client."""

    id: str
    testId: str
    userId: int
    status: str
    startedAt: datetime
    finishedAt: datetime | None = None
    expiresAt: datetime
    durationMinutes: int
    score: float | None = None
    pointsAwarded: float | None = None
    maxPoints: float | None = None


class AnswerRecordResponse(BaseModel):
    """Stored answer for one question."""

    id: int
    attemptId: str
    questionId: int
    submittedAnswer: str | None = None
    isCorrect: bool | None = None
    pointsAwarded: float
    answeredAt: datetime | None = None


class QuestionGradeResponse(BaseModel):
    """Grading outcome for one question."""

    questionId: int
    sectionId: int
    questionType: str
    submittedAnswer: str | None = None
    isCorrect: bool
    pointsAwarded: float
    maxPoints: float


class AttemptFinalizeResponse(BaseModel):
    """Model for attempt finalization response."""

    attempt: AttemptResponse
    scorePercentage: float
    pointsAwarded: float
    maxPoints: float
    breakdown: list[QuestionGradeResponse]


class AttemptExpireResponse(BaseModel):
    """Outcome of a time's-up check."""

    expired: bool
    attempt: AttemptResponse


class ResultOption(BaseModel):
    id: int
    text: str
    isCorrect: bool | None = None


class ResultQuestion(BaseModel):
    id: int
    sectionId: int
    type: str
    text: str
    points: float
    correctAnswer: str | None = None
    solutionText: str | None = None
    options: list[ResultOption] = []


class ResultAnswer(BaseModel):
    """One question of the results breakdown."""

    questionId: int
    submittedAnswer: str | None = None
    isCorrect: bool | None = None
    pointsAwarded: float
    answeredAt: datetime | None = None
    question: ResultQuestion


class ResultTest(BaseModel):
    id: str
    name: str
    description: str | None = None
    durationMinutes: int


class AttemptResultsResponse(BaseModel):
    """Full grading breakdown of an attempt."""

    attempt: AttemptResponse
    test: ResultTest
    answers: list[ResultAnswer]


class AttemptListItem(BaseModel):
    """Attempt with the name of its test."""

    attempt: AttemptResponse
    testName: str
