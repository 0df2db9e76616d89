"""Pydantic models."""
from examprep.models.attempts import (
    AnswerRecordResponse,
    AnswerSubmitRequest,
    AttemptExpireResponse,
    AttemptFinalizeResponse,
    AttemptListItem,
    AttemptResponse,
    AttemptResultsResponse,
    AttemptStartRequest,
)
from examprep.models.auth import (
    MessageResponse,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from examprep.models.content import TestCreate, TestDefinition, TestSummary
from examprep.models.notifications import NotificationResponse

__all__ = [
    "AnswerRecordResponse",
    "AnswerSubmitRequest",
    "AttemptExpireResponse",
    "AttemptFinalizeResponse",
    "AttemptListItem",
    "AttemptResponse",
    "AttemptResultsResponse",
    "AttemptStartRequest",
    "MessageResponse",
    "NotificationResponse",
    "TestCreate",
    "TestDefinition",
    "TestSummary",
    "TokenResponse",
    "UserLogin",
    "UserRegister",
    "UserResponse",
]
