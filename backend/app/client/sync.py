"""
Realtime client with polling fallback.

``HomeManagerClient`` keeps a ``QueryCache`` in sync with the server:

- the realtime listener authenticates on ``/api/ws`` and marks queries
  stale as change events arrive, reconnecting with exponential backoff
- the poller re-fetches stale or aged queries every ``poll_interval``
  seconds whether or not the realtime connection is up, since realtime
  delivery is best-effort

Transport failures are logged and retried, never raised to the caller.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp

from app.client.invalidation import QueryCache, QueryKey

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 300.0

# query name -> (path, query params) for a scope id
QUERY_ROUTES: Dict[str, Callable[[str], Tuple[str, Dict[str, str]]]] = {
    "tasks": lambda house_id: ("/api/tasks", {"house_id": house_id}),
    "devices": lambda house_id: ("/api/devices", {"house_id": house_id}),
    "shopping-items": lambda house_id: ("/api/shopping-items", {"house_id": house_id}),
    "members": lambda house_id: (f"/api/houses/{house_id}/members", {}),
    "houses": lambda user_id: ("/api/houses", {}),
    "notifications": lambda user_id: ("/api/notifications", {}),
}


class RealtimeConnectionError(Exception):
    """The realtime connection ended before or during the handshake."""


class RealtimeAuthError(RealtimeConnectionError):
    """The server rejected the realtime handshake."""


class HomeManagerClient:
    """REST client plus realtime cache invalidation for one signed-in user."""

    def __init__(
        self,
        base_url: str,
        token: str,
        user_id: str,
        cache: Optional[QueryCache] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reconnect_initial: float = 1.0,
        reconnect_max: float = 60.0,
        handshake_timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user_id = user_id
        self.cache = cache or QueryCache(max_age=poll_interval)
        self.poll_interval = poll_interval
        self.reconnect_initial = reconnect_initial
        self.reconnect_max = reconnect_max
        self.handshake_timeout = handshake_timeout
        self.connected = False
        self._session = session
        self._closed = False
        self._tasks: List[asyncio.Task] = []

    @property
    def ws_url(self) -> str:
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):] + "/api/ws"
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://"):] + "/api/ws"
        return self.base_url + "/api/ws"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=aiohttp.ClientTimeout(total=30),
            )
        return self._session

    # REST

    async def fetch(self, key: QueryKey) -> Any:
        """Fetch a query from the REST API and store it fresh in the cache."""
        name, scope_id = key
        path, params = QUERY_ROUTES[name](scope_id)
        session = await self._get_session()
        async with session.get(f"{self.base_url}{path}", params=params) as response:
            response.raise_for_status()
            data = await response.json()
        self.cache.store(key, data)
        return data

    async def query(self, key: QueryKey) -> Any:
        """Cached data for ``key``, re-fetched first when stale."""
        if self.cache.is_stale(key):
            return await self.fetch(key)
        return self.cache.data(key)

    async def refresh_stale(self) -> int:
        """Re-fetch every stale or aged query; returns how many succeeded."""
        refreshed = 0
        for key in self.cache.stale_keys():
            try:
                await self.fetch(key)
                refreshed += 1
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.warning(f"Refreshing {key} failed: {e!r}")
        return refreshed

    # Realtime

    def handle_message(self, message: Any) -> None:
        """Apply one realtime message to the cache."""
        if not isinstance(message, dict):
            return
        if message.get("type") in ("pong", "auth_success", "auth_error"):
            return
        self.cache.apply_event(message, self.user_id)

    async def _handshake(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        await ws.send_json({"type": "auth", "token": self.token})
        msg = await ws.receive(timeout=self.handshake_timeout)
        if msg.type != aiohttp.WSMsgType.TEXT:
            raise RealtimeConnectionError(f"Connection closed during handshake ({msg.type.name})")

        reply = json.loads(msg.data)
        if not isinstance(reply, dict):
            raise RealtimeConnectionError("Unexpected handshake reply")
        if reply.get("type") != "auth_success":
            raise RealtimeAuthError(reply.get("message", "authentication failed"))

    async def _listen_once(self) -> None:
        session = await self._get_session()
        async with session.ws_connect(self.ws_url, heartbeat=30) as ws:
            await self._handshake(ws)

            self.connected = True
            logger.info("Realtime connected")
            # Events sent while we were offline are lost
            self.cache.invalidate_all()
            await self.refresh_stale()

            try:
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        try:
                            self.handle_message(json.loads(msg.data))
                        except json.JSONDecodeError:
                            logger.warning("Ignoring malformed realtime message")
                    elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                        break
            finally:
                self.connected = False
                logger.info("Realtime disconnected")

    async def listen_forever(self) -> None:
        """Keep the realtime connection up, backing off between attempts."""
        delay = self.reconnect_initial
        while not self._closed:
            try:
                await self._listen_once()
                delay = self.reconnect_initial
            except (aiohttp.ClientError, asyncio.TimeoutError, RealtimeConnectionError, ValueError) as e:
                logger.warning(f"Realtime connection failed: {e!r}; retrying in {delay:.0f}s")
            except Exception as e:
                logger.error(f"Unexpected realtime error: {e!r}; retrying in {delay:.0f}s")

            if self._closed:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.reconnect_max)

    async def poll_forever(self) -> None:
        """Degraded-mode path; runs even while realtime is connected."""
        while not self._closed:
            await asyncio.sleep(self.poll_interval)
            refreshed = await self.refresh_stale()
            if refreshed:
                logger.debug(f"Poll refreshed {refreshed} quer{'y' if refreshed == 1 else 'ies'}")

    async def run(self) -> None:
        """
        Run the realtime listener and the poller until ``close``.

        The two loops are independent tasks; one stopping never cancels
        the other.
        """
        self._tasks = [
            asyncio.create_task(self.listen_forever()),
            asyncio.create_task(self.poll_forever()),
        ]
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Sync loop stopped: {result!r}")

    async def close(self) -> None:
        self._closed = True
        for task in self._tasks:
            task.cancel()
        if self._session and not self._session.closed:
            await self._session.close()
