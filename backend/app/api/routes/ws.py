"""
Realtime WebSocket endpoint.

Protocol:
- client connects to ``/api/ws``
- first message must be ``{"type": "auth", "token": "<JWT>"}``;
  the server answers ``auth_success`` or ``auth_error`` (then closes)
- ``{"type": "ping"}`` is answered with ``{"type": "pong"}``
- after authentication the server pushes change events for every house
  the user belongs to, plus the user's own notification events
"""

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy import select

from app.core.database import async_session_maker
from app.core.security import verify_token
from app.models.user import User
from app.realtime.sessions import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

# Policy violation close code used for failed authentication
AUTH_FAILED_CLOSE_CODE = 4001


async def _authenticate(websocket: WebSocket) -> Optional[str]:
    """Wait for the auth message and return the user id, or None after replying auth_error."""
    message = await websocket.receive_json()
    if not isinstance(message, dict) or message.get("type") != "auth":
        await websocket.send_json({"type": "auth_error", "message": "Authenticate first"})
        return None

    token_data = verify_token(str(message.get("token") or ""))
    if token_data is None:
        await websocket.send_json({"type": "auth_error", "message": "Invalid or expired token"})
        return None

    async with async_session_maker() as session:
        result = await session.execute(select(User.id).where(User.id == token_data.user_id))
        if result.first() is None:
            await websocket.send_json({"type": "auth_error", "message": "User not found"})
            return None

    return token_data.user_id


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket):
    registry: SessionRegistry = websocket.app.state.sessions
    await websocket.accept()

    user_id = None
    try:
        user_id = await _authenticate(websocket)
        if user_id is None:
            await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
            return

        # Register before confirming so no event sent after auth_success is missed
        registry.add(user_id, websocket)
        await websocket.send_json({"type": "auth_success", "user_id": user_id})
        logger.info(f"Realtime session connected: {user_id}")

        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Realtime WebSocket error: {e}")
    finally:
        if user_id is not None:
            registry.remove(user_id, websocket)
            logger.info(f"Realtime session disconnected: {user_id}")
