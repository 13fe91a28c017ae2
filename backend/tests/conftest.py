import json
import os
import tempfile

# Point the app at a throwaway database before anything imports its settings
_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="homemanager-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALLOW_DEV_LOGIN"] = "true"
os.environ["SMTP_HOST"] = ""
os.environ["VAPID_PUBLIC_KEY"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app import models  # noqa: F401
from app.core.database import Base, async_session_maker
from app.main import app
from app.services.push import PushEndpointGone


sync_engine = create_engine(f"sqlite:///{_DB_PATH}")


class FakeTransportSession:
    """Stands in for a WebSocket; records what the server sends."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_invitation(self, to, house_name, inviter_name, role, invite_link):
        if self.fail:
            raise ConnectionRefusedError("SMTP server down")
        self.sent.append({
            "to": to,
            "house_name": house_name,
            "inviter_name": inviter_name,
            "role": role,
            "invite_link": invite_link,
        })
        return True


class FakePushSender:
    enabled = True
    public_key = "test-vapid-public-key"

    def __init__(self):
        self.sent = []
        self.gone = set()
        self.fail = False

    async def send(self, subscription_json, title, body, data=None):
        endpoint = json.loads(subscription_json)["endpoint"]
        if endpoint in self.gone:
            raise PushEndpointGone(endpoint, 410)
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.sent.append({"endpoint": endpoint, "title": title, "body": body, "data": data})
        return True


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def fake_push():
    return FakePushSender()


@pytest.fixture
def client(fake_mailer, fake_push):
    with TestClient(app) as test_client:
        app.state.mailer = fake_mailer
        app.state.notifier.push_sender = fake_push
        yield test_client


@pytest.fixture
def sync_db():
    with Session(sync_engine, expire_on_commit=False) as session:
        yield session


@pytest_asyncio.fixture
async def db_session():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def login(client):
    """Sign a user in; returns the user payload, auth headers and token."""

    def _login(uid, email, display_name=None):
        response = client.post(
            "/api/auth/login",
            json={"uid": uid, "email": email, "display_name": display_name or uid.title()},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        token = data["token"]["access_token"]
        return {
            "user": data["user"],
            "id": data["user"]["id"],
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _login


@pytest.fixture
def make_house(client):
    def _make_house(owner, name):
        response = client.post("/api/houses", json={"name": name}, headers=owner["headers"])
        assert response.status_code == 201, response.text
        return response.json()["id"]

    return _make_house


@pytest.fixture
def join_house(client):
    """Invite ``member`` into ``house_id`` as ``owner`` and accept it."""

    def _join_house(owner, house_id, member, role="member"):
        response = client.post(
            f"/api/houses/{house_id}/invitations",
            json={"email": member["user"]["email"], "role": role},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text
        token = response.json()["token"]
        accepted = client.post(f"/api/invitations/{token}/accept", headers=member["headers"])
        assert accepted.status_code == 200, accepted.text
        return token

    return _join_house
