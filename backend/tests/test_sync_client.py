import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from app.client.invalidation import QueryCache
from app.client.sync import HomeManagerClient

TASKS = ("tasks", "h1")
DEVICES = ("devices", "h1")


class FakeHomeServer:
    """
    Minimal stand-in for the API: list endpoints plus ``/api/ws``.

    ``handshakes`` scripts how each new WebSocket connection answers the
    auth message: "accept" (default), "close" or "garbage".
    """

    def __init__(self):
        self.handshakes = []
        self.connections = 0
        self.sockets = []
        self.fetches = []
        self.ws_enabled = True
        self.app = web.Application()
        self.app.router.add_get("/api/tasks", self._list("tasks"))
        self.app.router.add_get("/api/devices", self._list("devices"))
        self.app.router.add_get("/api/ws", self._websocket)
        self.server = TestServer(self.app)

    @property
    def base_url(self):
        return str(self.server.make_url("/"))

    def _list(self, name):
        async def handler(request):
            self.fetches.append((name, request.query.get("house_id")))
            return web.json_response({name: [{"id": f"{name}-{len(self.fetches)}"}], "total": 1})

        return handler

    async def _websocket(self, request):
        if not self.ws_enabled:
            raise web.HTTPServiceUnavailable()
        self.connections += 1
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.receive_json()

        behaviour = self.handshakes.pop(0) if self.handshakes else "accept"
        if behaviour == "close":
            await ws.close()
            return ws
        if behaviour == "garbage":
            await ws.send_json(["not", "an", "object"])
            await ws.close()
            return ws

        await ws.send_json({"type": "auth_success", "user_id": "u1"})
        self.sockets.append(ws)
        async for _ in ws:
            pass
        return ws


async def eventually(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def home_server():
    server = FakeHomeServer()
    await server.server.start_server()
    yield server
    await server.server.close()


def _client(server, **options):
    options.setdefault("poll_interval", 60)
    options.setdefault("reconnect_initial", 0.01)
    options.setdefault("reconnect_max", 0.05)
    client = HomeManagerClient(
        server.base_url, token="token", user_id="u1", cache=QueryCache(max_age=60), **options
    )
    client.cache.store(TASKS, {"tasks": []})
    client.cache.store(DEVICES, {"devices": []})
    return client


async def _stop(client, task):
    await client.close()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@pytest.mark.asyncio
async def test_event_marks_matching_queries_stale(home_server):
    client = _client(home_server)
    listener = asyncio.create_task(client.listen_forever())
    try:
        await eventually(lambda: client.connected and len(home_server.fetches) == 2)
        await eventually(lambda: not client.cache.stale_keys())
        fetched = client.cache.data(TASKS)

        await home_server.sockets[-1].send_json(
            {"type": "task_update", "action": "created", "house_id": "h1", "payload": {"id": "t9"}}
        )

        await eventually(lambda: client.cache.is_stale(TASKS))
        assert client.cache.data(TASKS) == fetched
        assert not client.cache.is_stale(DEVICES)
    finally:
        await _stop(client, listener)


@pytest.mark.asyncio
async def test_client_reconnects_after_server_drops_connection(home_server):
    client = _client(home_server)
    listener = asyncio.create_task(client.listen_forever())
    try:
        await eventually(lambda: client.connected)
        await home_server.sockets[-1].close()

        await eventually(lambda: home_server.connections == 2 and client.connected)
        assert not listener.done()
    finally:
        await _stop(client, listener)


@pytest.mark.asyncio
async def test_broken_handshakes_do_not_stop_the_listener(home_server):
    home_server.handshakes = ["close", "garbage"]
    client = _client(home_server)
    listener = asyncio.create_task(client.listen_forever())
    try:
        await eventually(lambda: home_server.connections == 3 and client.connected)
        assert not listener.done()
    finally:
        await _stop(client, listener)


@pytest.mark.asyncio
async def test_poller_refreshes_while_realtime_is_down(home_server):
    home_server.ws_enabled = False
    client = _client(home_server, poll_interval=0.05)
    client.cache.invalidate([TASKS])
    runner = asyncio.create_task(client.run())
    try:
        await eventually(lambda: ("tasks", "h1") in home_server.fetches)
        await eventually(lambda: not client.cache.is_stale(TASKS))
        assert not client.connected
        assert ("devices", "h1") not in home_server.fetches
    finally:
        await client.close()
        await asyncio.wait_for(runner, timeout=3)
