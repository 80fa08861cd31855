"""
Tests for the health and metrics endpoints.
"""


def test_health_live(client):
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "reason": None}


def test_health_ready(client, database_file):
    """Test readiness when the database file can be opened."""
    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_health_not_ready(client_for):
    """Test readiness fails with the store errors when no file is configured."""
    with client_for("") as client:
        response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["reason"] == "initDatabase: Database file not defined"


def test_metrics_after_submission(client):
    """Test submission outcomes show up in the Prometheus output."""
    client.post(
        "/messages",
        json={"message": "count me", "consent": True},
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert 'message_submissions_total{result="created"}' in body
    assert "http_requests_total" in body
