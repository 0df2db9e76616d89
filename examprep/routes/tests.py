"""Test catalogue endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session as DbSession

from examprep.database import get_db
from examprep.dependencies.auth import get_current_user, require_elevated
from examprep.models import TestCreate, TestDefinition, TestSummary
from examprep.models.db.user import User
from examprep.services import content_service
from examprep.utils import utc_now, validate_id

router = APIRouter(prefix="/api/tests", tags=["tests"])


def _strip_answer_key(payload: dict[str, object]) -> dict[str, object]:
    """Remove correct answers, solutions and option flags from a test payload."""
    for section in payload.get("sections", []):
        for question in section.get("questions", []):
            question.pop("correct_answer", None)
            question.pop("solution_text", None)
            for option in question.get("options", []):
                option.pop("is_correct", None)
    return payload


@router.get("", response_model=list[TestSummary])
def list_tests(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> list[TestSummary]:
    """List tests; plain users only see published ones."""
    return content_service.list_tests(
        db, utc_now(), include_unpublished=current_user.is_elevated
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_test(
    payload: TestCreate,
    current_user: Annotated[User, Depends(require_elevated)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Import a whole test (sections, questions, options) in one request."""
    test = content_service.import_test(db, payload, created_by=current_user.id)
    return test.model_dump(mode="json")


@router.get("/{test_id}")
def get_test(
    test_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Get a test; the answer key is only included for teachers and admins."""
    test_id = validate_id("testId", test_id)
    test: TestDefinition = content_service.get_test(db, test_id)

    if current_user.is_elevated:
        return test.model_dump(mode="json")

    if not test.is_published(utc_now()):
        raise HTTPException(status_code=403, detail="Test is not active")
    return _strip_answer_key(test.model_dump(mode="json"))
