"""Database models."""
from examprep.models.db.user import ELEVATED_ROLES, Session, User, UserRole
from examprep.models.db.content import Option, Question, QuestionType, Section, Test
from examprep.models.db.attempt import (
    TERMINAL_STATUSES,
    Attempt,
    AttemptAnswer,
    AttemptStatus,
)
from examprep.models.db.notification import Notification

__all__ = [
    "ELEVATED_ROLES",
    "User",
    "UserRole",
    "Session",
    "Option",
    "Question",
    "QuestionType",
    "Section",
    "Test",
    "TERMINAL_STATUSES",
    "Attempt",
    "AttemptAnswer",
    "AttemptStatus",
    "Notification",
]
