"""
Tests for the POST /messages endpoint.

Tests cover:
- Successful submission and stored fields
- Request metadata captured from the HTTP call
- Validation errors (422)
- Unavailable store (503) and failed insert (500)
"""

import json
import sqlite3

import pytest


def submit(client, body: dict):
    """Helper to post a JSON submission."""
    return client.post(
        "/messages",
        content=json.dumps(body),
        headers={"Content-Type": "application/json"}
    )


@pytest.fixture
def valid_submission() -> dict:
    return {"message": "Hello", "consent": True, "tag": "example"}


class TestSubmitSuccess:
    """Test successful submissions."""

    def test_submit_message(self, client, valid_submission, database_file):
        """Test a valid submission is stored and echoed back."""
        response = submit(client, valid_submission)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["count"] == 9
        stored = data["stored"]
        assert stored["message"] == "Hello"
        assert stored["tag"] == "example"
        assert stored["status"] == "new"

        with sqlite3.connect(database_file) as conn:
            row = conn.execute(
                "SELECT message, tag FROM messages WHERE id = ?", (stored["id"],)
            ).fetchone()
        assert row == ("Hello", "example")

    def test_request_context_recorded(self, client, valid_submission):
        """Test client IP, agent, URI and host are stored."""
        response = client.post(
            "/messages?src=form",
            content=json.dumps(valid_submission),
            headers={"Content-Type": "application/json", "User-Agent": "pytest-agent/1.0"}
        )

        assert response.status_code == 200
        stored = response.json()["stored"]
        assert stored["agent"] == "pytest-agent/1.0"
        assert stored["uri"] == "/messages?src=form"
        assert stored["server"] == "testserver"
        assert stored["ip"] == "testclient"

    def test_default_tag(self, client):
        """Test submissions without tag use the configured default."""
        response = submit(client, {"message": "untagged", "consent": True})

        assert response.status_code == 200
        assert response.json()["stored"]["tag"] == ""

    def test_ids_increase_across_requests(self, client, valid_submission):
        """Test each request stores a new row with a larger id."""
        first = submit(client, valid_submission).json()["stored"]["id"]
        second = submit(client, valid_submission).json()["stored"]["id"]

        assert second > first

    def test_request_id_header(self, client, valid_submission):
        """Test responses carry an X-Request-ID header."""
        response = submit(client, valid_submission)

        assert response.headers.get("X-Request-ID")


class TestSubmitValidationErrors:
    """Test submission validation errors (422)."""

    def test_invalid_json(self, client):
        response = client.post(
            "/messages",
            content="not valid json",
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert response.json()["detail"].startswith("Invalid JSON")

    def test_body_not_utf8(self, client):
        """Test undecodable bytes are a validation error, not a crash."""
        response = client.post(
            "/messages",
            content=b'{"message":"\xc3"}',
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert response.json()["detail"].startswith("Invalid JSON")

    def test_missing_message(self, client):
        response = submit(client, {"consent": True})

        assert response.status_code == 422

    def test_blank_message(self, client):
        response = submit(client, {"message": "   ", "consent": True})

        assert response.status_code == 422
        assert "Please enter a message" in response.json()["detail"][0]

    def test_missing_consent(self, client):
        response = submit(client, {"message": "Hello"})

        assert response.status_code == 422
        assert "must consent" in response.json()["detail"][0]

    def test_consent_false(self, client):
        response = submit(client, {"message": "Hello", "consent": False})

        assert response.status_code == 422

    def test_nothing_stored_on_validation_error(self, client, database_file):
        submit(client, {"message": "Hello", "consent": False})

        with sqlite3.connect(database_file) as conn:
            count = conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
        assert count == 0


class TestSubmitStoreErrors:
    """Test store failures surfaced over HTTP."""

    def test_store_unavailable(self, client_for, tmp_path, valid_submission):
        """Test a dead store returns 503 with its diagnostics."""
        path = str(tmp_path / "missing" / "messages.sqlite")

        with client_for(path) as client:
            response = submit(client, valid_submission)

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["reason"] == "Message Storage is temporarily unavailable"
        assert detail["errors"] == [f"initDatabase: Create Database failed: {path}"]

    def test_save_failed(self, client_for, database_file, valid_submission):
        """Test a failed insert returns 500 with the engine error."""
        with sqlite3.connect(database_file) as conn:
            conn.execute("CREATE TABLE messages (id INTEGER PRIMARY KEY, message TEXT)")

        with client_for(database_file) as client:
            response = submit(client, valid_submission)

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["reason"] == "Unable to save message"
        assert len(detail["errors"]) == 1
        assert detail["errors"][0].startswith("save/queryExecute: execute failed:")

    def test_unencodable_message(self, client):
        """Test a lone surrogate escape is reported as a failed save."""
        response = client.post(
            "/messages",
            content='{"message":"\\ud800","consent":true}',
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["reason"] == "Unable to save message"
        assert len(detail["errors"]) == 1
        assert detail["errors"][0].startswith("save/queryExecute: execute failed:")
