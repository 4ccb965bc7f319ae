"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' when both stores answer
  - 'degraded' when a store ping fails
  - No authentication required
  - Hosts outside the trusted list get 400
"""

from __future__ import annotations

from unittest.mock import patch

from api.main import __version__


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_degraded_when_vault_down(api_client):
    """A failing store ping flips status and the database component."""
    vault = api_client.app.state.vault
    with patch.object(vault, "ping", return_value=False):
        data = api_client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
    assert data["components"]["app"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    api_client.cookies.clear()
    resp = api_client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_host_rejected(api_client):
    """TrustedHostMiddleware turns away hosts outside the localhost list."""
    assert api_client.get("/api/v1/health", headers={"Host": "evil.example"}).status_code == 400
    assert api_client.get("/api/v1/health", headers={"Host": "testserver"}).status_code == 400
    assert api_client.get("/api/v1/health", headers={"Host": "127.0.0.1"}).status_code == 200
