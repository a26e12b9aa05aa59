"""
Shared fixtures: every test runs against a fresh in-memory document store
and a fresh playground session registry.
"""

import pytest
from fastapi.testclient import TestClient

from core.config import settings
from core.database import reset_database
from playground_service.models import playground_session


@pytest.fixture(autouse=True)
def memory_database(monkeypatch):
    monkeypatch.setattr(settings, "USE_IN_MEMORY_DB", True)
    monkeypatch.setattr(settings, "ORDER_PROCESSING_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    reset_database()
    monkeypatch.setattr(playground_session, "_handler_instance", None)
    yield


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


@pytest.fixture
def registered_user(client):
    payload = {"name": "Ada Lovelace", "email": "ada@example.com", "password": "analytical-engine"}
    response = client.post("/api/register", json=payload)
    assert response.status_code == 201
    return payload


@pytest.fixture
def logged_in_client(client, registered_user):
    response = client.post(
        "/api/login",
        json={"email": registered_user["email"], "password": registered_user["password"]},
    )
    assert response.status_code == 200
    return client
