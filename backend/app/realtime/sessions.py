"""
Session registry - maps a user id to that user's open transport sessions.

Owned by the application lifespan and stored on ``app.state``. Sessions
are keyed by user, not by house: a user's sessions are shared across every
house they belong to, and house filtering happens through membership.

Only the WebSocket connection lifecycle calls ``add``/``remove``. A
multi-process deployment can swap this object for one backed by an
external pub/sub without touching the broadcaster.
"""

import logging
from typing import Any, Dict, List, Protocol

logger = logging.getLogger(__name__)


class TransportSession(Protocol):
    """Anything that can deliver a JSON message to one connected client."""

    async def send_json(self, data: Any) -> None:
        ...


class SessionRegistry:
    """In-process registry of open sessions per user."""

    def __init__(self):
        self._sessions: Dict[str, List[TransportSession]] = {}

    def add(self, user_id: str, session: TransportSession) -> None:
        sessions = self._sessions.setdefault(user_id, [])
        if not any(s is session for s in sessions):
            sessions.append(session)
        logger.debug(f"Session opened for user {user_id} ({len(sessions)} open)")

    def remove(self, user_id: str, session: TransportSession) -> None:
        sessions = self._sessions.get(user_id)
        if not sessions:
            return
        remaining = [s for s in sessions if s is not session]
        if remaining:
            self._sessions[user_id] = remaining
        else:
            del self._sessions[user_id]
        logger.debug(f"Session closed for user {user_id} ({len(remaining)} open)")

    def sessions_for(self, user_id: str) -> List[TransportSession]:
        # Copy so callers can remove while iterating
        return list(self._sessions.get(user_id, ()))

    def connected_users(self) -> List[str]:
        return list(self._sessions.keys())

    def session_count(self) -> int:
        return sum(len(s) for s in self._sessions.values())
