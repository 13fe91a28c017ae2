import pytest
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.services.broadcaster import EventType


@pytest.fixture
def household(client, login, make_house, join_house):
    alice = login("alice", "alice@example.com", "Alice")
    bob = login("bob", "bob@example.com", "Bob")
    house_id = make_house(alice, "Lakeview")
    join_house(alice, house_id, bob)
    return {"alice": alice, "bob": bob, "house_id": house_id}


def _authenticate(session, member):
    session.send_json({"type": "auth", "token": member["token"]})
    assert session.receive_json() == {"type": "auth_success", "user_id": member["id"]}


def _open_sessions(user_id):
    return len(app.state.sessions.sessions_for(user_id))


def test_auth_then_ping(client, household):
    bob = household["bob"]
    with client.websocket_connect("/api/ws") as session:
        _authenticate(session, bob)
        session.send_json({"type": "ping"})
        assert session.receive_json() == {"type": "pong"}
        assert _open_sessions(bob["id"]) == 1


def test_bad_token_is_rejected(client):
    with client.websocket_connect("/api/ws") as session:
        session.send_json({"type": "auth", "token": "not-a-jwt"})
        assert session.receive_json()["type"] == "auth_error"
        with pytest.raises(WebSocketDisconnect) as exc:
            session.receive_json()
        assert exc.value.code == 4001


def test_first_message_must_authenticate(client):
    with client.websocket_connect("/api/ws") as session:
        session.send_json({"type": "ping"})
        assert session.receive_json()["type"] == "auth_error"


def test_task_change_reaches_other_member(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    with client.websocket_connect("/api/ws") as session:
        _authenticate(session, bob)
        created = client.post(
            "/api/tasks",
            json={"house_id": house_id, "title": "Fix sink"},
            headers=alice["headers"],
        ).json()

        event = session.receive_json()
        assert event["type"] == EventType.TASK_UPDATE.value
        assert event["action"] == "created"
        assert event["house_id"] == house_id
        assert event["payload"]["id"] == created["id"]


def test_assignee_gets_notification_event(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    with client.websocket_connect("/api/ws") as session:
        _authenticate(session, bob)
        client.post(
            "/api/tasks",
            json={"house_id": house_id, "title": "Fix sink", "assigned_to_id": bob["id"]},
            headers=alice["headers"],
        )

        first, second = session.receive_json(), session.receive_json()
        assert [first["type"], second["type"]] == ["task_update", "notification"]
        assert second["payload"]["type"] == "task_assigned"


def test_removed_member_is_told_directly(client, household):
    alice, bob, house_id = household["alice"], household["bob"], household["house_id"]
    with client.websocket_connect("/api/ws") as session:
        _authenticate(session, bob)
        response = client.delete(
            f"/api/houses/{house_id}/members/{bob['id']}", headers=alice["headers"]
        )
        assert response.status_code == 200

        event = session.receive_json()
        assert event["type"] == "member_update"
        assert event["action"] == "removed"
        assert event["payload"] == {"user_id": bob["id"]}


def test_disconnect_unregisters_session(client, household):
    bob = household["bob"]
    with client.websocket_connect("/api/ws") as session:
        _authenticate(session, bob)
    assert _open_sessions(bob["id"]) == 0
