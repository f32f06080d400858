"""Shared fixtures for service tests: a stubbed Plaid API and a live app."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from plaidgate.service.app import create_app
from plaidgate.service.client import PlaidClient
from plaidgate.service.config import Settings
from plaidgate.webhook.router import WebhookRegistry


class PlaidStub:
    """In-process fake of the Plaid endpoints the service calls."""

    def __init__(self) -> None:
        self.keys: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.categories_down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content or b"{}")

        if request.url.path == "/webhook_verification_key/get":
            key = self.keys.get(body.get("key_id"))
            if key is None:
                return httpx.Response(
                    400,
                    json={
                        "error_type": "INVALID_INPUT",
                        "error_code": "INVALID_WEBHOOK_VERIFICATION_KEY_ID",
                        "error_message": "invalid key_id provided",
                        "request_id": "req-missing-key",
                    },
                )
            return httpx.Response(200, json={"key": key, "request_id": "req-key"})

        if request.url.path == "/categories/get":
            if self.categories_down:
                return httpx.Response(
                    500,
                    json={
                        "error_type": "API_ERROR",
                        "error_code": "INTERNAL_SERVER_ERROR",
                        "error_message": "an unexpected error occurred",
                        "request_id": "req-down",
                    },
                )
            return httpx.Response(
                200,
                json={
                    "categories": [
                        {"category_id": "10000000", "group": "special", "hierarchy": ["Bank Fees"]},
                        {"category_id": "12000000", "group": "place", "hierarchy": ["Community"]},
                    ],
                    "request_id": "req-categories",
                },
            )

        return httpx.Response(404, json={"error_type": "INVALID_REQUEST"})

    @property
    def key_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/webhook_verification_key/get"]


@pytest.fixture()
def plaid_env(monkeypatch):
    """Plaid credentials for the sandbox environment."""
    monkeypatch.setenv("PLAID_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("PLAID_SECRET", "test-secret")
    monkeypatch.setenv("PLAID_ENV", "sandbox")


@pytest.fixture()
def plaid_stub(signer) -> PlaidStub:
    stub = PlaidStub()
    stub.keys[signer.kid] = dict(signer.public_jwk)
    return stub


@pytest.fixture()
def plaid_client(plaid_env, plaid_stub) -> PlaidClient:
    return PlaidClient.from_settings(
        Settings(), transport=httpx.MockTransport(plaid_stub.handler)
    )


@pytest.fixture()
def registry() -> WebhookRegistry:
    return WebhookRegistry()


@pytest.fixture()
def app(plaid_env, plaid_client, registry):
    """Create the service app wired to the stubbed Plaid API."""
    return create_app(settings=Settings(), plaid_client=plaid_client, registry=registry)


@pytest.fixture()
def client(app):
    """Return a TestClient for the app with lifespan triggered."""
    with TestClient(app) as c:
        yield c
