"""plaidgate exception hierarchy.

All service-specific exceptions inherit from :class:`PlaidGateError`.
"""

from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    """Why a webhook assertion was rejected.

    Logged internally; never returned to the webhook sender.
    """

    MISSING_SIGNATURE = "missing_signature"
    KEY_UNAVAILABLE = "key_unavailable"
    BAD_SIGNATURE = "bad_signature"
    STALE_ASSERTION = "stale_assertion"
    BODY_HASH_MISMATCH = "body_hash_mismatch"


class PlaidGateError(Exception):
    """Base exception for all plaidgate errors."""


class ConfigurationError(PlaidGateError):
    """Raised when required Plaid configuration is missing or invalid."""


class PlaidAPIError(PlaidGateError):
    """Raised when a call to the Plaid API fails.

    Carries Plaid's ``error_type`` / ``error_code`` pair so callers can
    branch on them without touching transport objects.  Transport-level
    failures use ``error_type="TRANSPORT_ERROR"``.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: str = "API_ERROR",
        error_code: str = "INTERNAL_SERVER_ERROR",
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.request_id = request_id

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type,
            "error_code": self.error_code,
            "message": self.message,
        }


class WebhookError(PlaidGateError):
    """Base exception for the inbound webhook path."""


class AuthorizationError(WebhookError):
    """Raised when a webhook fails signature verification."""

    def __init__(self, reason: FailureReason) -> None:
        super().__init__(f"Webhook verification failed: {reason.value}")
        self.reason = reason


class MalformedEnvelopeError(WebhookError):
    """Raised when a verified webhook body is not a usable envelope."""
