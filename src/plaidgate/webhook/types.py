"""Core types and constants for Plaid webhook handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from plaidgate.webhook.errors import FailureReason


# Header carrying the signed JWT on every Plaid webhook
VERIFICATION_HEADER = "plaid-verification"

# The only algorithm Plaid signs webhooks with
SIGNING_ALGORITHM = "ES256"

# Claim holding the SHA-256 hex digest of the request body
BODY_HASH_CLAIM = "request_body_sha256"


class WebhookType(str, Enum):
    """Webhook categories the router knows about.

    Using ``str, Enum`` so that ``WebhookType.ITEM == "ITEM"`` is True.
    """

    TRANSACTIONS = "TRANSACTIONS"
    ITEM = "ITEM"
    AUTH = "AUTH"
    ASSETS = "ASSETS"
    HOLDINGS = "HOLDINGS"
    LIABILITIES = "LIABILITIES"


class OutcomeStatus(str, Enum):
    PROCESSED = "processed"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass
class VerificationKeySet:
    """A Plaid verification key plus its cache bookkeeping.

    ``fetched_at`` is a ``time.monotonic()`` reading taken when the key
    was fetched.  ``expired_at`` is Plaid's own rotation marker (unix
    seconds) and is ``None`` while the key is current.
    """

    key_id: str
    public_key_material: dict[str, Any] | str
    fetched_at: float
    ttl: float
    expired_at: int | None = None

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl

    def is_expired(self, unix_now: float) -> bool:
        return self.expired_at is not None and self.expired_at <= unix_now


@dataclass(frozen=True)
class KeyFetchError:
    """Failed key lookup, returned (not raised) by the key cache."""

    key_id: str
    error_type: str
    error_code: str
    message: str


@dataclass(frozen=True)
class WebhookEnvelope:
    """A verified webhook body, split into routing fields and the rest."""

    type: str
    code: str
    item_id: str | None = None
    raw_body: bytes = field(default=b"", repr=False)
    extra_fields: dict[str, Any] = field(default_factory=dict)

    @property
    def webhook_type(self) -> WebhookType | None:
        """The known category for this envelope, or ``None``."""
        try:
            return WebhookType(self.type)
        except ValueError:
            return None


@dataclass(frozen=True)
class SignedAssertion:
    """A compact JWS taken from the ``Plaid-Verification`` header."""

    token: str
    algorithm: str
    key_id: str | None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def body_hash(self) -> Any:
        return self.claims.get(BODY_HASH_CLAIM)


@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    failure_reason: FailureReason | None = None

    @classmethod
    def ok(cls) -> VerificationResult:
        return cls(is_valid=True)

    @classmethod
    def failed(cls, reason: FailureReason) -> VerificationResult:
        return cls(is_valid=False, failure_reason=reason)


@dataclass(frozen=True)
class ProcessingOutcome:
    """Terminal result of handling one webhook delivery."""

    status: OutcomeStatus
    webhook_type: str | None = None
    webhook_code: str | None = None
    details: str | None = None

    @classmethod
    def processed(cls, envelope: WebhookEnvelope) -> ProcessingOutcome:
        return cls(
            status=OutcomeStatus.PROCESSED,
            webhook_type=envelope.type,
            webhook_code=envelope.code,
        )
