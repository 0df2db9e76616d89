"""Notification Pydantic models."""
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    """Notification as returned to its recipient."""

    id: int
    title: str
    message: str
    kind: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
