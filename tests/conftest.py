"""Test configuration and fixtures.

The API talks to MongoDB through Motor. Tests swap the get_db dependency for
an in-memory mongomock-motor database, so no server is needed.
"""
import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from mongomock_motor import AsyncMongoMockClient

sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment BEFORE importing app modules
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["MAINTENANCE_MODE"] = "false"

from app import config  # noqa: E402
from app.main import app  # noqa: E402
from app.database import get_db  # noqa: E402
from app.system import maintenance  # noqa: E402


def run(coro):
    """Await a database call from a synchronous test (seeding, assertions)"""
    return asyncio.run(coro)


@pytest.fixture
def mock_db():
    return AsyncMongoMockClient()["test_learning_platform"]


@pytest.fixture
def client(mock_db):
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    maintenance.state.enabled = False
    maintenance.state.message = maintenance.MAINTENANCE_MESSAGE


def create_access_token(user_id: str, role: str = "user", **claims) -> str:
    """Mint a token in the identity service's shape (sub + role)"""
    payload = {"sub": user_id, "role": role, **claims}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def auth_headers(user_id: str, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def user_headers():
    return auth_headers("user-1")


@pytest.fixture
def other_headers():
    return auth_headers("user-2")


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", "admin")


@pytest.fixture
def make_course(client, admin_headers):
    def _make(**overrides):
        payload = {"title": "Intro to Algorithms", "category": "Algorithms", "difficulty": "beginner"}
        payload.update(overrides)
        resp = client.post("/api/courses", json=payload, headers=admin_headers)
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _make


@pytest.fixture
def make_problem_set(client, admin_headers):
    def _make(**overrides):
        payload = {
            "title": "Arrays Warmup",
            "difficulty": "easy",
            "category": "arrays",
            "tags": ["arrays"],
            "is_public": True,
            "problem_instances": [
                {"problem_id": 1, "difficulty": "easy"},
                {"problem_id": 2, "difficulty": "medium"},
                {"problem_id": 3, "difficulty": "hard"},
            ],
        }
        payload.update(overrides)
        resp = client.post("/api/admin/problem-sets", json=payload, headers=admin_headers)
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _make
