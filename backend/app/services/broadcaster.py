"""
Change broadcaster.

After a committed mutation to a house-scoped entity, every open session of
every current member of that house receives a structured event:

    {"type": "task_update", "action": "created", "house_id": "...", "payload": {...}}

Events are invalidation hints, not diffs. Delivery is best-effort and
at-most-once: no retry, no persistence of missed events and no ordering
guarantee. A session whose send fails is dropped from the registry.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dispatch import log_failure
from app.realtime.sessions import SessionRegistry
from app.services.membership import members_of

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Entity classes that clients invalidate caches for."""
    TASK_UPDATE = "task_update"
    DEVICE_UPDATE = "device_update"
    SHOPPING_LIST_UPDATE = "shopping_list_update"
    MEMBER_UPDATE = "member_update"
    NOTIFICATION = "notification"


def build_event(
    event_type: EventType,
    action: str,
    house_id: Optional[str],
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "type": EventType(event_type).value,
        "action": action,
        "house_id": house_id,
        "payload": payload or {},
    }


class ChangeBroadcaster:
    """Fans events out to the sessions of house members."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def publish(
        self,
        db: AsyncSession,
        house_id: str,
        event_type: EventType,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Send an event to every connected member of ``house_id``.

        Must be called after the mutation is committed. Never raises;
        returns the number of sessions the event reached.
        """
        event = build_event(event_type, action, house_id, payload)
        try:
            member_ids = await members_of(db, house_id)
        except Exception as e:
            log_failure(f"{event['type']}/{action} broadcast to house {house_id}", e)
            return 0

        delivered = 0
        for user_id in member_ids:
            delivered += await self._deliver(user_id, event)

        logger.debug(
            f"Broadcast {event['type']}/{action} to house {house_id}: "
            f"{delivered} session(s) of {len(member_ids)} member(s)"
        )
        return delivered

    async def notify_user(self, user_id: str, event: Dict[str, Any]) -> int:
        """Send an event to one user's sessions only."""
        return await self._deliver(user_id, event)

    async def _deliver(self, user_id: str, event: Dict[str, Any]) -> int:
        delivered = 0
        for session in self.registry.sessions_for(user_id):
            try:
                await session.send_json(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping session of user {user_id} after failed send: {e!r}")
                self.registry.remove(user_id, session)
        return delivered
