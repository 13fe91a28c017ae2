import json

import pytest
from sqlalchemy import delete, select

from app.models.notification import Notification
from app.models.user import PushSubscription


@pytest.fixture
def household(client, login, make_house, join_house, sync_db):
    alice = login("alice", "alice@example.com", "Alice")
    bob = login("bob", "bob@example.com", "Bob")
    carol = login("carol", "carol@example.com", "Carol")
    house_id = make_house(alice, "Lakeview")
    join_house(alice, house_id, bob)
    join_house(alice, house_id, carol)
    # Start every inbox empty; joining left invitation notifications behind
    sync_db.execute(delete(Notification))
    sync_db.commit()
    return {"alice": alice, "bob": bob, "carol": carol, "house_id": house_id}


def _subscribe(client, member, endpoint):
    response = client.post(
        "/api/push/subscribe",
        json={"endpoint": endpoint, "keys": {"p256dh": "key", "auth": "secret"}},
        headers=member["headers"],
    )
    assert response.status_code == 201
    return response.json()


def _assign(client, actor, house_id, assignee, title="Fix sink"):
    return client.post(
        "/api/tasks",
        json={"house_id": house_id, "title": title, "assigned_to_id": assignee["id"]},
        headers=actor["headers"],
    ).json()


def test_inbox_lists_reads_and_deletes(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _assign(client, alice, house_id, bob, "Fix sink")
    _assign(client, alice, house_id, bob, "Mow lawn")

    inbox = client.get("/api/notifications", headers=bob["headers"]).json()
    assert inbox["total"] == 2
    assert inbox["unread_count"] == 2
    first = inbox["notifications"][0]

    read = client.post(f"/api/notifications/{first['id']}/read", headers=bob["headers"])
    assert read.json()["is_read"] is True
    unread = client.get("/api/notifications?unread_only=true", headers=bob["headers"]).json()
    assert unread["total"] == 1
    assert unread["unread_count"] == 1

    deleted = client.delete(f"/api/notifications/{first['id']}", headers=bob["headers"])
    assert deleted.status_code == 200
    assert client.get("/api/notifications", headers=bob["headers"]).json()["total"] == 1


def test_mark_all_read(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _assign(client, alice, house_id, bob, "One")
    _assign(client, alice, house_id, bob, "Two")

    response = client.post("/api/notifications/read-all", headers=bob["headers"])

    assert response.json() == {"status": "success", "marked_count": 2}
    assert client.get("/api/notifications", headers=bob["headers"]).json()["unread_count"] == 0


def test_other_users_notifications_look_missing(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _assign(client, alice, house_id, bob)
    notification_id = client.get("/api/notifications", headers=bob["headers"]).json()["notifications"][0]["id"]

    carol = household["carol"]
    assert client.post(f"/api/notifications/{notification_id}/read", headers=carol["headers"]).status_code == 404
    assert client.delete(f"/api/notifications/{notification_id}", headers=carol["headers"]).status_code == 404


def test_dead_push_subscription_is_pruned(client, household, sync_db, fake_push):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _subscribe(client, bob, "https://push.example.com/phone")
    _subscribe(client, bob, "https://push.example.com/laptop")
    fake_push.gone.add("https://push.example.com/laptop")

    task = _assign(client, alice, house_id, bob)

    assert task["status"] == "assigned"
    assert [p["endpoint"] for p in fake_push.sent] == ["https://push.example.com/phone"]
    endpoints = sync_db.execute(
        select(PushSubscription.endpoint).where(PushSubscription.user_id == bob["id"])
    ).scalars().all()
    assert endpoints == ["https://push.example.com/phone"]


def test_push_failure_keeps_notification(client, household, fake_push):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _subscribe(client, bob, "https://push.example.com/phone")
    fake_push.fail = True

    task = _assign(client, alice, house_id, bob)

    assert task["assigned_to_id"] == bob["id"]
    assert client.get("/api/notifications", headers=bob["headers"]).json()["total"] == 1


def test_resubscribing_moves_endpoint_and_unsubscribe_removes_it(client, household, sync_db):
    alice, bob = household["alice"], household["bob"]
    _subscribe(client, alice, "https://push.example.com/shared")
    _subscribe(client, bob, "https://push.example.com/shared")

    rows = sync_db.execute(select(PushSubscription)).scalars().all()
    assert [(r.user_id, r.endpoint) for r in rows] == [(bob["id"], "https://push.example.com/shared")]
    assert json.loads(rows[0].subscription)["keys"]["auth"] == "secret"

    removed = client.post(
        "/api/push/unsubscribe",
        json={"endpoint": "https://push.example.com/shared"},
        headers=bob["headers"],
    )
    assert removed.json() == {"status": "unsubscribed", "removed": 1}


def test_vapid_key_endpoint(client):
    response = client.get("/api/push/vapid-public-key")
    assert response.json() == {"public_key": "test-vapid-public-key", "enabled": True}


def test_shopping_commit_notifies_everyone_else(client, household):
    alice, bob, carol, house_id = (
        household["alice"], household["bob"], household["carol"], household["house_id"]
    )
    client.post(
        "/api/shopping-items",
        json={"house_id": house_id, "name": "Milk"},
        headers=alice["headers"],
    )

    response = client.post(
        "/api/shopping-items/commit", json={"house_id": house_id}, headers=alice["headers"]
    )

    assert response.json() == {"status": "committed", "notified": 2}
    for member in (bob, carol):
        inbox = client.get("/api/notifications", headers=member["headers"]).json()
        assert [n["type"] for n in inbox["notifications"]] == ["shopping_list_updated"]
        assert inbox["notifications"][0]["title"] == "Shopping list updated"
    assert client.get("/api/notifications", headers=alice["headers"]).json()["total"] == 0


def test_purchasing_an_item_records_who(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    item = client.post(
        "/api/shopping-items",
        json={"house_id": house_id, "name": "Eggs", "note": "free range"},
        headers=alice["headers"],
    ).json()

    bought = client.patch(
        f"/api/shopping-items/{item['id']}", json={"is_purchased": True}, headers=bob["headers"]
    ).json()

    assert bought["is_purchased"] is True
    assert bought["purchased_by_id"] == bob["id"]
    assert bought["note"] == "free range"
    open_items = client.get(
        f"/api/shopping-items?house_id={house_id}&include_purchased=false", headers=alice["headers"]
    ).json()
    assert open_items["total"] == 0
