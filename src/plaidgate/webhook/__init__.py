"""Plaid webhook authentication and dispatch.

Public API re-exports for ``plaidgate.webhook``.
"""

from plaidgate.webhook.errors import (
    FailureReason,
    PlaidGateError,
    ConfigurationError,
    PlaidAPIError,
    WebhookError,
    AuthorizationError,
    MalformedEnvelopeError,
)

from plaidgate.webhook.types import (
    VERIFICATION_HEADER,
    SIGNING_ALGORITHM,
    BODY_HASH_CLAIM,
    WebhookType,
    OutcomeStatus,
    VerificationKeySet,
    KeyFetchError,
    WebhookEnvelope,
    SignedAssertion,
    VerificationResult,
    ProcessingOutcome,
)

from plaidgate.webhook.keys import KeyCache, KeyFetcher

from plaidgate.webhook.verifier import (
    SignatureVerifier,
    body_sha256,
    parse_assertion,
)

from plaidgate.webhook.router import (
    KNOWN_CODES,
    WebhookHandler,
    WebhookRegistry,
    WebhookRouter,
)

from plaidgate.webhook.processor import (
    WebhookProcessor,
    get_header,
    parse_envelope,
    outcome_for_error,
    outcome_response,
)

__all__ = [
    # Errors
    "FailureReason",
    "PlaidGateError",
    "ConfigurationError",
    "PlaidAPIError",
    "WebhookError",
    "AuthorizationError",
    "MalformedEnvelopeError",
    # Types
    "VERIFICATION_HEADER",
    "SIGNING_ALGORITHM",
    "BODY_HASH_CLAIM",
    "WebhookType",
    "OutcomeStatus",
    "VerificationKeySet",
    "KeyFetchError",
    "WebhookEnvelope",
    "SignedAssertion",
    "VerificationResult",
    "ProcessingOutcome",
    # Keys
    "KeyCache",
    "KeyFetcher",
    # Verifier
    "SignatureVerifier",
    "body_sha256",
    "parse_assertion",
    # Router
    "KNOWN_CODES",
    "WebhookHandler",
    "WebhookRegistry",
    "WebhookRouter",
    # Processor
    "WebhookProcessor",
    "get_header",
    "parse_envelope",
    "outcome_for_error",
    "outcome_response",
]
