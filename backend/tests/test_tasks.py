import pytest
from sqlalchemy import select

from app.models.notification import Notification


@pytest.fixture
def household(client, login, make_house, join_house):
    alice = login("alice", "alice@example.com", "Alice")
    bob = login("bob", "bob@example.com", "Bob")
    house_id = make_house(alice, "Lakeview")
    join_house(alice, house_id, bob)
    return {"alice": alice, "bob": bob, "house_id": house_id}


def _create(client, actor, house_id, **fields):
    response = client.post(
        "/api/tasks",
        json={"house_id": house_id, "title": fields.pop("title", "Fix sink"), **fields},
        headers=actor["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


def _notifications_for(sync_db, user_id):
    return sync_db.execute(
        select(Notification).where(
            Notification.user_id == user_id, Notification.type == "task_assigned"
        )
    ).scalars().all()


def test_creating_assigned_task_notifies_assignee(client, household, sync_db, fake_push):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    client.post(
        "/api/push/subscribe",
        json={"endpoint": "https://push.example.com/bob", "keys": {"p256dh": "k", "auth": "a"}},
        headers=bob["headers"],
    )

    task = _create(client, alice, house_id, assigned_to_id=bob["id"])

    assert task["status"] == "assigned"
    assert task["assigned_to_id"] == bob["id"]
    notifications = _notifications_for(sync_db, bob["id"])
    assert [n.type for n in notifications] == ["task_assigned"]
    assert notifications[0].title == "New task assigned"
    assert notifications[0].data == {"task_id": task["id"]}
    assert fake_push.sent[-1]["endpoint"] == "https://push.example.com/bob"
    assert fake_push.sent[-1]["data"]["task_id"] == task["id"]


def test_self_assignment_does_not_notify(client, household, sync_db):
    alice, house_id = household["alice"], household["house_id"]
    task = _create(client, alice, house_id, assigned_to_id=alice["id"])
    assert task["status"] == "assigned"
    assert _notifications_for(sync_db, alice["id"]) == []


def test_unassigned_task_starts_created(client, household):
    task = _create(client, household["alice"], household["house_id"])
    assert task["status"] == "created"
    assert task["assigned_to_id"] is None


def test_assigning_and_clearing_moves_status(client, household, sync_db):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    task = _create(client, alice, house_id)

    assigned = client.patch(
        f"/api/tasks/{task['id']}/assign",
        json={"assigned_to_id": bob["id"]},
        headers=alice["headers"],
    )
    assert assigned.json()["status"] == "assigned"
    assert len(_notifications_for(sync_db, bob["id"])) == 1

    started = client.patch(
        f"/api/tasks/{task['id']}", json={"status": "in_progress"}, headers=bob["headers"]
    )
    assert started.json()["status"] == "in_progress"

    cleared = client.patch(
        f"/api/tasks/{task['id']}/assign", json={"assigned_to_id": None}, headers=alice["headers"]
    )
    assert cleared.json()["status"] == "created"
    assert cleared.json()["assigned_to_id"] is None


def test_reassigning_same_user_does_not_notify_again(client, household, sync_db):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    task = _create(client, alice, house_id, assigned_to_id=bob["id"])

    client.patch(
        f"/api/tasks/{task['id']}/assign",
        json={"assigned_to_id": bob["id"]},
        headers=alice["headers"],
    )

    assert len(_notifications_for(sync_db, bob["id"])) == 1


def test_completion_records_assignee_or_creator(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]

    assigned = _create(client, alice, house_id, title="Mow lawn", assigned_to_id=bob["id"])
    done = client.patch(f"/api/tasks/{assigned['id']}/complete", headers=alice["headers"]).json()
    assert done["status"] == "completed"
    assert done["completed_by_id"] == bob["id"]
    assert done["completed_at"] is not None

    unassigned = _create(client, bob, house_id, title="Water plants")
    done = client.patch(f"/api/tasks/{unassigned['id']}/complete", headers=alice["headers"]).json()
    assert done["completed_by_id"] == bob["id"]


def test_reopening_clears_completion(client, household):
    alice, house_id = household["alice"], household["house_id"]
    task = _create(client, alice, house_id)
    client.patch(f"/api/tasks/{task['id']}/complete", headers=alice["headers"])

    reopened = client.patch(
        f"/api/tasks/{task['id']}", json={"status": "created"}, headers=alice["headers"]
    ).json()

    assert reopened["status"] == "created"
    assert reopened["completed_by_id"] is None
    assert reopened["completed_at"] is None


def test_assignee_must_be_a_member(client, login, household):
    alice, house_id = household["alice"], household["house_id"]
    outsider = login("oscar", "oscar@example.com")

    response = client.post(
        "/api/tasks",
        json={"house_id": house_id, "title": "Fix sink", "assigned_to_id": outsider["id"]},
        headers=alice["headers"],
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Tasks can only be assigned to members of the house"


def test_non_members_cannot_see_or_touch_tasks(client, login, household):
    alice, house_id = household["alice"], household["house_id"]
    task = _create(client, alice, house_id)
    outsider = login("oscar", "oscar@example.com")

    assert client.get(f"/api/tasks?house_id={house_id}", headers=outsider["headers"]).status_code == 403
    assert client.get(f"/api/tasks/{task['id']}", headers=outsider["headers"]).status_code == 403
    assert client.delete(f"/api/tasks/{task['id']}", headers=outsider["headers"]).status_code == 403


def test_partial_update_keeps_unsent_fields(client, household):
    alice, house_id = household["alice"], household["house_id"]
    task = _create(client, alice, house_id, description="Kitchen tap drips", priority="high")

    updated = client.patch(
        f"/api/tasks/{task['id']}", json={"title": "Fix kitchen sink"}, headers=alice["headers"]
    ).json()

    assert updated["title"] == "Fix kitchen sink"
    assert updated["description"] == "Kitchen tap drips"
    assert updated["priority"] == "high"


def test_list_filters_by_status_and_assignee(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    _create(client, alice, house_id, title="One")
    mine = _create(client, alice, house_id, title="Two", assigned_to_id=bob["id"])

    by_assignee = client.get(
        f"/api/tasks?house_id={house_id}&assigned_to_id={bob['id']}", headers=bob["headers"]
    ).json()
    assert [t["id"] for t in by_assignee["tasks"]] == [mine["id"]]

    created = client.get(
        f"/api/tasks?house_id={house_id}&status=created", headers=bob["headers"]
    ).json()
    assert [t["title"] for t in created["tasks"]] == ["One"]


def test_delete_removes_task(client, household):
    alice, house_id = household["alice"], household["house_id"]
    task = _create(client, alice, house_id)

    response = client.delete(f"/api/tasks/{task['id']}", headers=alice["headers"])

    assert response.json() == {"status": "deleted", "id": task["id"]}
    assert client.get(f"/api/tasks/{task['id']}", headers=alice["headers"]).status_code == 404


def test_active_status_requires_an_assignee(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    task = _create(client, alice, house_id)

    for status in ("assigned", "in_progress"):
        rejected = client.patch(
            f"/api/tasks/{task['id']}", json={"status": status}, headers=alice["headers"]
        )
        assert rejected.status_code == 400
    assert client.get(f"/api/tasks/{task['id']}", headers=alice["headers"]).json()["status"] == "created"

    started = client.patch(
        f"/api/tasks/{task['id']}",
        json={"assigned_to_id": bob["id"], "status": "in_progress"},
        headers=alice["headers"],
    ).json()
    assert (started["status"], started["assigned_to_id"]) == ("in_progress", bob["id"])

    cleared = client.patch(
        f"/api/tasks/{task['id']}",
        json={"assigned_to_id": None, "status": "in_progress"},
        headers=alice["headers"],
    )
    assert cleared.status_code == 400
