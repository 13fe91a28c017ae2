import pytest

from app.client.invalidation import INVALIDATION_TABLE, QueryCache, invalidation_targets
from app.client.sync import HomeManagerClient
from app.services.broadcaster import EventType, build_event


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_every_broadcast_type_has_targets():
    assert set(INVALIDATION_TABLE) == {t.value for t in EventType}


@pytest.mark.parametrize(
    "event_type, expected",
    [
        ("task_update", {("tasks", "h1")}),
        ("device_update", {("devices", "h1")}),
        ("shopping_list_update", {("shopping-items", "h1")}),
        ("member_update", {("members", "h1"), ("houses", "u1")}),
        ("notification", {("notifications", "u1")}),
    ],
)
def test_invalidation_targets(event_type, expected):
    event = build_event(EventType(event_type), "updated", "h1", {"id": "x"})
    assert invalidation_targets(event, "u1") == expected


def test_unknown_event_type_targets_nothing():
    assert invalidation_targets({"type": "pong"}, "u1") == frozenset()
    assert invalidation_targets({"type": "task_update"}, "u1") == frozenset()


def test_invalidation_targets_is_pure():
    event = {"type": "task_update", "action": "created", "house_id": "h1", "payload": {}}
    first = invalidation_targets(event, "u1")
    second = invalidation_targets(event, "u1")
    assert first == second
    assert event == {"type": "task_update", "action": "created", "house_id": "h1", "payload": {}}


def test_invalidate_marks_stale_without_touching_data():
    cache = QueryCache(max_age=300)
    cache.store(("tasks", "h1"), [{"id": "t1"}])
    cache.store(("devices", "h1"), [])

    event = {"type": "task_update", "action": "deleted", "house_id": "h1", "payload": {"id": "t1"}}
    cache.apply_event(event, "u1")

    assert cache.is_stale(("tasks", "h1"))
    assert cache.data(("tasks", "h1")) == [{"id": "t1"}]
    assert not cache.is_stale(("devices", "h1"))


def test_invalidate_ignores_uncached_keys():
    cache = QueryCache()
    assert cache.invalidate([("tasks", "h1")]) == 0
    assert cache.keys() == []


def test_entries_go_stale_with_age():
    clock = FakeClock()
    cache = QueryCache(max_age=300, clock=clock)
    cache.store(("houses", "u1"), [])
    assert cache.stale_keys() == []

    clock.now += 301
    assert cache.stale_keys() == [("houses", "u1")]


def test_store_clears_staleness():
    cache = QueryCache()
    cache.store(("tasks", "h1"), [])
    cache.invalidate_all()
    cache.store(("tasks", "h1"), [{"id": "t2"}])
    assert not cache.is_stale(("tasks", "h1"))


def test_client_ignores_protocol_messages():
    client = HomeManagerClient("http://localhost:8000", token="t", user_id="u1")
    client.cache.store(("notifications", "u1"), [])

    client.handle_message({"type": "pong"})
    client.handle_message({"type": "auth_success", "user_id": "u1"})
    client.handle_message("not-an-event")
    assert not client.cache.is_stale(("notifications", "u1"))

    client.handle_message({"type": "notification", "action": "created", "house_id": "h1", "payload": {}})
    assert client.cache.is_stale(("notifications", "u1"))


def test_client_ws_url():
    assert HomeManagerClient("https://home.example.com/", "t", "u").ws_url == "wss://home.example.com/api/ws"
    assert HomeManagerClient("http://localhost:8000", "t", "u").ws_url == "ws://localhost:8000/api/ws"


@pytest.mark.asyncio
async def test_refresh_stale_refetches_only_stale_entries(monkeypatch):
    client = HomeManagerClient("http://localhost:8000", token="t", user_id="u1")
    client.cache.store(("tasks", "h1"), [])
    client.cache.store(("devices", "h1"), [])
    client.cache.invalidate([("tasks", "h1")])

    fetched = []

    async def fake_fetch(key):
        fetched.append(key)
        client.cache.store(key, ["fresh"])
        return ["fresh"]

    monkeypatch.setattr(client, "fetch", fake_fetch)

    assert await client.refresh_stale() == 1
    assert fetched == [("tasks", "h1")]
    assert client.cache.data(("tasks", "h1")) == ["fresh"]
    await client.close()
