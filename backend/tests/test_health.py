def test_health_reports_open_sessions(client, login):
    alice = login("alice", "alice@example.com")
    assert client.get("/api/health").json()["realtime_sessions"] == 0

    with client.websocket_connect("/api/ws") as session:
        session.send_json({"type": "auth", "token": alice["token"]})
        session.receive_json()
        assert client.get("/api/health").json()["realtime_sessions"] == 1


def test_ready_checks_database(client):
    assert client.get("/api/ready").json() == {"status": "ready"}
