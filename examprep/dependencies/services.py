"""Service dependencies for FastAPI."""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session as DbSession

from examprep.database import get_db
from examprep.services.attempt_service import AttemptOrchestrator
from examprep.services.notification_service import DatabaseNotifier


def get_orchestrator(
    db: Annotated[DbSession, Depends(get_db)],
) -> AttemptOrchestrator:
    """Attempt orchestrator bound to the request's database session."""
    return AttemptOrchestrator(db, notifier=DatabaseNotifier(db))
