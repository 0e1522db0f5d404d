import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pageflow-test.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from pageflow.core.config import settings
from pageflow.main import create_app

PASSWORD = "Secret123"


@pytest.fixture
def app(tmp_path):
    return create_app(settings.model_copy(update={
        "database_url": f"sqlite+aiosqlite:///{tmp_path}/test.db",
        "auto_create_tables": True,
        "ws_heartbeat_timeout": 5.0,
    }))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class Member:
    """Registered user with a token"""

    def __init__(self, client: TestClient, username: str):
        response = client.post("/auth/register", json={
            "email": f"{username}@example.com",
            "username": username,
            "password": PASSWORD,
        })
        assert response.status_code == 201, response.text
        self.id = response.json()["uuid"]
        self.username = username

        response = client.post("/auth/login", json={"email": f"{username}@example.com", "password": PASSWORD})
        assert response.status_code == 200, response.text
        self.token = response.json()["access_token"]
        self.headers = {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def make_member(client):
    def factory(username: str) -> Member:
        return Member(client, username)
    return factory


@pytest.fixture
def alice(make_member):
    return make_member("alice")


@pytest.fixture
def bob(make_member):
    return make_member("bob")


@pytest.fixture
def page(client, alice, bob):
    """Page owned by alice with bob invited as editor"""
    response = client.post("/pages", json={"title": "Roadmap"}, headers=alice.headers)
    assert response.status_code == 201, response.text
    page = response.json()
    response = client.post(
        f"/pages/{page['uuid']}/collaborators",
        json={"user_id": bob.id, "role": "editor"},
        headers=alice.headers,
    )
    assert response.status_code == 201, response.text
    return page


def add_block(client, member, page_id, **body):
    body.setdefault("type", "text")
    response = client.post(f"/pages/{page_id}/blocks", json=body, headers=member.headers)
    assert response.status_code == 201, response.text
    return response.json()
