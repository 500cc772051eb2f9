"""Notification API routes."""
from fastapi import APIRouter, status

from expertiz.api.deps import CurrentUser, NotificationServiceDep
from expertiz.schemas.notification import MarkAllReadResponse, NotificationResponse

router = APIRouter()


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(current_user: CurrentUser, notification_service: NotificationServiceDep):
    """Mark all of the user's notifications as read."""
    updated = await notification_service.mark_all_read(current_user.id)
    return MarkAllReadResponse(updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: CurrentUser,
    notification_service: NotificationServiceDep,
):
    """Mark one notification as read."""
    return await notification_service.mark_read(current_user.id, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    current_user: CurrentUser,
    notification_service: NotificationServiceDep,
):
    """Delete a notification."""
    await notification_service.delete(current_user.id, notification_id)
