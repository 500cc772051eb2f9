"""Notification schemas for request/response validation."""
from datetime import datetime

from pydantic import BaseModel, Field

from expertiz.models.notification import NotificationType


class NotificationResponse(BaseModel):
    """Schema for notification response."""
    id: int
    type: NotificationType
    title: str
    message: str
    action_url: str | None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for notification list response."""
    notifications: list[NotificationResponse]
    total: int
    page: int
    limit: int
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class MaintenanceNotice(BaseModel):
    """Schema for broadcasting a maintenance notice."""
    message: str = Field(..., min_length=1, max_length=2000)
    user_ids: list[int] | None = None  # None = all active users


class BroadcastResponse(BaseModel):
    sent: int
