"""Notification endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session as DbSession

from examprep.database import get_db
from examprep.dependencies.auth import get_current_user
from examprep.models import NotificationResponse
from examprep.models.db.user import User
from examprep.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
def list_notifications(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> list[NotificationResponse]:
    """Current user's notifications, newest first."""
    return [
        NotificationResponse.model_validate(notification)
        for notification in notification_service.list_notifications(db, current_user.id)
    ]


@router.put("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Response:
    """Mark one notification as read."""
    if not notification_service.mark_as_read(db, notification_id, current_user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
