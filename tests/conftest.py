"""Shared test fixtures: a Plaid-style ES256 signer and an in-memory key store."""

from __future__ import annotations

import hashlib
import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwk, jws

from plaidgate.webhook.errors import PlaidAPIError


class PlaidSigner:
    """Signs webhook bodies the way Plaid does: ES256 JWS over a body hash."""

    def __init__(self, kid: str) -> None:
        private_key = ec.generate_private_key(ec.SECP256R1())
        self.kid = kid
        self.private_pem = private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")
        public = jwk.construct(self.private_pem, "ES256").public_key().to_dict()
        self.public_jwk = {
            **public,
            "kid": kid,
            "use": "sig",
            "created_at": 1700000000,
            "expired_at": None,
        }

    def sign(
        self,
        body: bytes,
        *,
        iat: float | None = None,
        body_hash: str | None = None,
        kid: str | None = None,
    ) -> str:
        claims = {
            "iat": int(time.time()) if iat is None else iat,
            "request_body_sha256": (
                hashlib.sha256(body).hexdigest() if body_hash is None else body_hash
            ),
        }
        return jws.sign(
            claims,
            self.private_pem,
            headers={"kid": kid or self.kid},
            algorithm="ES256",
        )


class KeyStore:
    """Stand-in for Plaid's ``/webhook_verification_key/get``."""

    def __init__(self) -> None:
        self.keys: dict[str, dict] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    def add(self, signer: PlaidSigner) -> None:
        self.keys[signer.kid] = dict(signer.public_jwk)

    async def fetch(self, key_id: str) -> dict:
        self.calls.append(key_id)
        if self.fail_with is not None:
            raise self.fail_with
        if key_id not in self.keys:
            raise PlaidAPIError(
                "key not found",
                error_type="INVALID_INPUT",
                error_code="INVALID_WEBHOOK_VERIFICATION_KEY_ID",
                status_code=400,
            )
        return self.keys[key_id]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def signer() -> PlaidSigner:
    """Return an ES256 signer with a fresh P-256 keypair."""
    return PlaidSigner(kid="6c5516e1-92dc-479e-a8ff-5a51992e0001")


@pytest.fixture()
def other_signer() -> PlaidSigner:
    """A second, unrelated signer (simulates a forged or rotated key)."""
    return PlaidSigner(kid="6c5516e1-92dc-479e-a8ff-5a51992e0002")


@pytest.fixture()
def key_store(signer) -> KeyStore:
    """A key store that knows *signer*'s public key."""
    store = KeyStore()
    store.add(signer)
    return store


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def item_body() -> bytes:
    """The raw body of a typical ITEM webhook, exactly as Plaid sends it."""
    return b'{"webhook_type":"ITEM","webhook_code":"PENDING_EXPIRATION","item_id":"item_123"}'
