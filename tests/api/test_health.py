"""
Tests for the health check endpoint.
"""

from sqlalchemy.exc import OperationalError

from tests.factories import auth_header, partial_token


def test_health_check_returns_200(client):
    """
    Verify the health endpoint responds with HTTP 200.

    If this fails, nothing else will work.
    """
    response = client.get("/health")
    assert response.status_code == 200


def test_health_check_returns_service_name(client):
    """Monitoring systems parse this field; keep it stable."""
    response = client.get("/health")
    data = response.json()
    assert data["service"] == "transaction-auth"


def test_health_check_reports_database_status(client):
    response = client.get("/health")
    data = response.json()
    assert data["database"] == "healthy"
    assert data["status"] == "healthy"


def test_health_check_degraded_when_database_fails(client, db_session, monkeypatch):
    def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "execute", broken_execute)

    data = client.get("/health").json()

    assert data["database"] == "unhealthy"
    assert data["status"] == "degraded"


def test_unexpected_database_error_is_opaque(client, db_session, user, monkeypatch):
    """Storage failures return a 500 with an error id, never the raw error."""
    token = partial_token(user)

    def broken_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("secret connection string"))

    monkeypatch.setattr(db_session, "get", broken_get)

    response = client.get("/transactions/1", headers=auth_header(token))

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "internal_error"
    assert "error_id" in body
    assert "secret connection string" not in response.text
