"""Typed errors raised by the attempt core and mapped to HTTP responses."""
from fastapi import Request, status
from fastapi.responses import JSONResponse


class ExamPrepError(Exception):
    """Base class for errors reported back to the API caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(ExamPrepError):
    """Referenced test, attempt or question does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ForbiddenError(ExamPrepError):
    """Caller does not own the resource and lacks an elevated role."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class InactiveTestError(ExamPrepError):
    """Attempt requested against a test that is not published."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Test is not active"


class DuplicateAttemptError(ExamPrepError):
    """An in-progress attempt already exists for this user and test."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "An attempt for this test is already in progress"

    def __init__(self, detail: str | None = None, attempt_id: str | None = None) -> None:
        self.attempt_id = attempt_id
        super().__init__(detail)


class AttemptNotActiveError(ExamPrepError):
    """Answer submitted to an attempt that is no longer in progress."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Test is no longer in progress"


class InvalidStateError(ExamPrepError):
    """Illegal attempt state transition."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid attempt state transition"


async def exam_prep_error_handler(request: Request, exc: ExamPrepError) -> JSONResponse:
    """Render an ExamPrepError the same way FastAPI renders HTTPException."""
    content: dict[str, object] = {"detail": exc.detail}
    attempt_id = getattr(exc, "attempt_id", None)
    if attempt_id:
        content["attemptId"] = attempt_id
    return JSONResponse(status_code=exc.status_code, content=content)
