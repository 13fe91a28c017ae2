from app.api.routes import auth as auth_routes


def test_first_login_creates_user_with_main_house(client, login):
    alice = login("alice", "alice@example.com", "Alice")

    houses = client.get("/api/houses", headers=alice["headers"]).json()

    assert [(h["name"], h["role"]) for h in houses] == [("Main House", "owner")]


def test_second_login_updates_profile_without_new_house(client, login):
    login("alice", "alice@example.com", "Alice")
    again = login("alice", "alice@example.com", "Alice Smith")

    assert again["user"]["display_name"] == "Alice Smith"
    assert len(client.get("/api/houses", headers=again["headers"]).json()) == 1


def test_email_belonging_to_another_account_conflicts(client, login):
    login("alice", "alice@example.com")

    response = client.post(
        "/api/auth/login", json={"uid": "impostor", "email": "alice@example.com"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "An account with this email already exists"


def test_me_requires_a_token(client, login):
    alice = login("alice", "alice@example.com", "Alice")

    assert client.get("/api/auth/me").status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 401
    me = client.get("/api/auth/me", headers=alice["headers"]).json()
    assert me["email"] == "alice@example.com"


def test_profile_update_is_broadcast_as_member_update(client, login):
    alice = login("alice", "alice@example.com", "Alice")
    with client.websocket_connect("/api/ws") as session:
        session.send_json({"type": "auth", "token": alice["token"]})
        session.receive_json()

        updated = client.patch(
            "/api/users/me", json={"display_name": "Al"}, headers=alice["headers"]
        )
        assert updated.json()["display_name"] == "Al"

        event = session.receive_json()
        assert (event["type"], event["action"]) == ("member_update", "updated")
        assert event["payload"] == {"user_id": alice["id"], "display_name": "Al"}


def test_dev_login_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(auth_routes.settings, "allow_dev_login", False)

    response = client.post("/api/auth/login", json={"uid": "alice", "email": "alice@example.com"})

    assert response.status_code == 501
