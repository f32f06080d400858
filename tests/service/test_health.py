"""Tests for GET /health and GET /validate-connection."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from plaidgate import __version__
from plaidgate.service.app import create_app
from plaidgate.service.config import Settings
from plaidgate.webhook.errors import ConfigurationError


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["service"] == "lipaworld-plaid-service"
        assert data["version"] == __version__
        datetime.fromisoformat(data["timestamp"])

    def test_health_makes_no_plaid_call(self, client, plaid_stub):
        client.get("/health")
        assert plaid_stub.requests == []


class TestValidateConnection:
    def test_connected(self, client):
        resp = client.get("/validate-connection")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "connected",
            "environment": "sandbox",
            "categories_count": 2,
        }

    def test_disconnected(self, client, plaid_stub):
        plaid_stub.categories_down = True
        resp = client.get("/validate-connection")
        assert resp.status_code == 503
        assert resp.json() == {
            "status": "disconnected",
            "environment": "sandbox",
            "error": {
                "error_type": "API_ERROR",
                "error_code": "INTERNAL_SERVER_ERROR",
                "message": "an unexpected error occurred",
            },
        }


class TestErrorShape:
    def test_unknown_route_uses_error_shape(self, client):
        resp = client.get("/no-such-route")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_wrong_method_on_webhook(self, client):
        resp = client.get("/webhook")
        assert resp.status_code == 405
        assert resp.json()["error"] == "method_not_allowed"


def test_startup_fails_without_credentials(monkeypatch):
    for name in ("PLAID_CLIENT_ID", "PLAID_SECRET", "PLAID_ENV"):
        monkeypatch.delenv(name, raising=False)
    app = create_app(settings=Settings())
    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass
