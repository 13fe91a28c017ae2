"""
Notification endpoints.

Users only ever see their own notifications; anyone else's look missing.
Real-time delivery goes through the shared ``/api/ws`` socket.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_notifier
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.notification import NotificationListResponse, NotificationResponse
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    house_id: Optional[str] = None,
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Get notifications for the current user, newest first."""
    notifications = await notifier.get_user_notifications(
        db,
        user_id=user.id,
        house_id=house_id,
        unread_only=unread_only,
        limit=limit,
    )
    unread_count = await notifier.unread_count(db, user.id, house_id)

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=len(notifications),
        unread_count=unread_count,
    )


@router.post("/read-all")
async def mark_all_notifications_read(
    house_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Mark all notifications as read."""
    count = await notifier.mark_all_read(db, user.id, house_id)
    return {"status": "success", "marked_count": count}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Mark a single notification as read."""
    notification = await notifier.mark_as_read(db, notification_id, user.id)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    await notifier.delete(db, notification_id, user.id)
    return {"status": "deleted", "notification_id": notification_id}
