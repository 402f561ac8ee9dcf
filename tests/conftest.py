"""Pytest configuration.

The application reads its settings from the environment at import time, so
the in-memory database and disabled scheduler are configured here before any
application module is imported. Tables are recreated for every test.
"""

from __future__ import annotations

import os
from datetime import date

os.environ["BUDGET_DATABASE_URL"] = "sqlite://"
os.environ["BUDGET_SCHEDULER_ENABLED"] = "false"
os.environ["BUDGET_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from router import get_today

TODAY = date(2024, 1, 15)


@pytest.fixture(autouse=True)
def _reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def set_today():
    def _set(day: date) -> None:
        app.dependency_overrides[get_today] = lambda: day

    _set(TODAY)
    yield _set
    app.dependency_overrides.pop(get_today, None)


@pytest.fixture
def client(set_today):
    return TestClient(app)


def register(client: TestClient, username: str, password: str = "secret-pw") -> dict:
    resp = client.post("/auth/register", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client, "alice")
