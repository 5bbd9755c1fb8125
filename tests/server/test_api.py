"""Tests for FastAPI server endpoints."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from habitsync.server.app import create_app
from habitsync.server.database import Database


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def client(db: Database) -> TestClient:
    """Create a test client with the app."""
    app = create_app(db)
    return TestClient(app)


def make_document(updated_at: int = 1700000000000) -> dict[str, object]:
    """Create a document body as a client sends it."""
    return {
        "habits": [{"id": 1, "name": "Read", "icon": "Book", "goal": 20, "completedDates": {"2025-01-01": True}}],
        "mentalState": {"logs": {"2025-01-01": {"mood": 7, "motivation": 5}}},
        "schoolData": {"subjects": [], "tests": [], "maxGrade": 10, "theme": "dark"},
        "updatedAt": updated_at,
        "deviceId": "dev-abc",
    }


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestStateEndpoints:
    """Tests for /api/state."""

    def test_unknown_code_returns_empty_document(self, client: TestClient) -> None:
        """An unused code should return the empty document."""
        response = client.get("/api/state", params={"code": "family"})
        assert response.status_code == 200
        body = response.json()
        assert body["updatedAt"] == 0
        assert body["habits"] == []

    def test_push_then_fetch(self, client: TestClient) -> None:
        """A pushed document should be returned unchanged."""
        response = client.post("/api/state", params={"code": "family"}, json=make_document())
        assert response.status_code == 200
        assert response.json() == make_document()

        response = client.get("/api/state", params={"code": "family"})
        assert response.json() == make_document()

    def test_push_is_idempotent(self, client: TestClient) -> None:
        """Pushing the same document twice should leave the same state."""
        client.post("/api/state", params={"code": "family"}, json=make_document())
        client.post("/api/state", params={"code": "family"}, json=make_document())
        assert client.get("/api/state", params={"code": "family"}).json() == make_document()

    def test_code_is_normalized(self, client: TestClient) -> None:
        """Codes differing only in ignored characters should share a document."""
        client.post("/api/state", params={"code": "My Family!"}, json=make_document())
        response = client.get("/api/state", params={"code": "myfamily"})
        assert response.json()["updatedAt"] == 1700000000000

    def test_unknown_fields_preserved(self, client: TestClient) -> None:
        """Fields the server does not know should be stored as-is."""
        body = {**make_document(), "theme": "neon"}
        client.post("/api/state", params={"code": "family"}, json=body)
        assert client.get("/api/state", params={"code": "family"}).json()["theme"] == "neon"

    def test_missing_code(self, client: TestClient) -> None:
        """A missing or empty code should be a 400 with an error field."""
        response = client.get("/api/state")
        assert response.status_code == 400
        assert "error" in response.json()

        response = client.get("/api/state", params={"code": "!!!"})
        assert response.status_code == 400

    def test_invalid_document(self, client: TestClient) -> None:
        """A document without habits should be rejected."""
        response = client.post("/api/state", params={"code": "family"}, json={"mentalState": {}})
        assert response.status_code == 400
        assert "habits" in response.json()["error"]

    def test_word_protection(self, client: TestClient) -> None:
        """Once set, the word should be required."""
        client.post("/api/state", params={"code": "family", "word": "secret"}, json=make_document())

        response = client.get("/api/state", params={"code": "family", "word": "guess"})
        assert response.status_code == 403
        assert response.json() == {"error": "Wrong sync word"}

        response = client.get("/api/state", params={"code": "family", "word": "secret"})
        assert response.status_code == 200
