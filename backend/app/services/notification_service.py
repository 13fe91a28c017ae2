"""
Notification Service - persists in-app notifications and delivers them.

Delivery:
- In-app inbox: a Notification row for the recipient
- Realtime: a user-scoped ``notification`` event to the recipient's sessions
- Web Push: one message per registered subscription, after the response

Failure Handling:
- Notifications are side effects; failures are logged, never raised
- Subscriptions the push service reports gone (404/410) are deleted
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_maker
from app.core.dispatch import best_effort, best_effort_task, log_failure
from app.core.errors import NotFoundError
from app.models.notification import Notification, NotificationType
from app.models.user import PushSubscription
from app.schemas.notification import NotificationResponse
from app.services.broadcaster import ChangeBroadcaster, EventType, build_event
from app.services.push import PushEndpointGone, WebPushSender

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Creates notifications and fans them out to the realtime and push
    channels.
    """

    def __init__(
        self,
        broadcaster: ChangeBroadcaster,
        push_sender: WebPushSender,
        session_factory: Callable[[], AsyncSession] = async_session_maker,
    ):
        self.broadcaster = broadcaster
        self.push_sender = push_sender
        self.session_factory = session_factory

    async def notify(
        self,
        user_id: str,
        house_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Optional[Notification]:
        """
        Create an in-app notification, tell the recipient's sessions about
        it and push it to their devices.

        The row is written in its own session so a failure never touches
        the caller's transaction. Push runs as a background task when
        ``background_tasks`` is given. Returns None when the row could not
        be stored.
        """
        notification = await self._store(user_id, house_id, notification_type, title, message, data)
        if notification is None:
            return None

        payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
        await self.broadcaster.notify_user(
            user_id,
            build_event(EventType.NOTIFICATION, "created", house_id, payload),
        )

        push_data = {
            "type": NotificationType(notification_type).value,
            "house_id": house_id,
            "notification_id": notification.id,
            **(data or {}),
        }
        description = f"push '{notification_type}' to user {user_id}"
        if background_tasks is not None:
            background_tasks.add_task(
                best_effort_task(
                    self.push_to_user, user_id, title, message, push_data,
                    description=description,
                )
            )
        else:
            await best_effort(self.push_to_user(user_id, title, message, push_data), description)

        return notification

    async def _store(
        self,
        user_id: str,
        house_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]],
    ) -> Optional[Notification]:
        notification = Notification(
            user_id=user_id,
            house_id=house_id,
            type=NotificationType(notification_type).value,
            title=title,
            message=message,
            data=data,
        )
        try:
            async with self.session_factory() as session:
                session.add(notification)
                await session.commit()
        except Exception as e:
            log_failure(f"storing '{notification_type}' notification for user {user_id}", e)
            return None

        logger.info(f"Notification '{notification_type}' created for user {user_id}")
        return notification

    async def push_to_user(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Push to every subscription of ``user_id``.

        Dead subscriptions are deleted; other per-endpoint failures are
        logged. Returns the number of successful sends.
        """
        if not self.push_sender.enabled:
            return 0

        sent = 0
        async with self.session_factory() as session:
            result = await session.execute(
                select(PushSubscription).where(PushSubscription.user_id == user_id)
            )
            subscriptions = list(result.scalars().all())

            pruned = 0
            for subscription in subscriptions:
                try:
                    if await self.push_sender.send(subscription.subscription, title, body, data):
                        sent += 1
                except PushEndpointGone as e:
                    logger.info(f"Removing dead push subscription of user {user_id}: {e}")
                    await session.delete(subscription)
                    pruned += 1
                except Exception as e:
                    log_failure(f"push to user {user_id}", e)

            if pruned:
                await session.commit()

        return sent

    async def get_user_notifications(
        self,
        db: AsyncSession,
        user_id: str,
        house_id: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        """Newest-first notifications addressed to the user."""
        query = select(Notification).where(Notification.user_id == user_id)
        if house_id:
            query = query.where(Notification.house_id == house_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def unread_count(
        self, db: AsyncSession, user_id: str, house_id: Optional[str] = None
    ) -> int:
        query = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        if house_id:
            query = query.where(Notification.house_id == house_id)
        result = await db.execute(query)
        return result.scalar_one()

    async def _owned(self, db: AsyncSession, notification_id: str, user_id: str) -> Notification:
        notification = await db.get(Notification, notification_id)
        # Other users' notifications are indistinguishable from missing ones
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification")
        return notification

    async def mark_as_read(self, db: AsyncSession, notification_id: str, user_id: str) -> Notification:
        notification = await self._owned(db, notification_id, user_id)
        notification.is_read = True
        await db.commit()
        return notification

    async def mark_all_read(
        self, db: AsyncSession, user_id: str, house_id: Optional[str] = None
    ) -> int:
        query = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        if house_id:
            query = query.where(Notification.house_id == house_id)
        result = await db.execute(query)
        await db.commit()
        return result.rowcount

    async def delete(self, db: AsyncSession, notification_id: str, user_id: str) -> None:
        notification = await self._owned(db, notification_id, user_id)
        await db.delete(notification)
        await db.commit()
