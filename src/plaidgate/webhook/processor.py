"""Webhook request pipeline: verify, parse, route, report.

:class:`WebhookProcessor` is the single entry point the HTTP layer calls
for ``POST /webhook``.  It raises :class:`AuthorizationError` when the
``Plaid-Verification`` assertion does not check out, and
:class:`MalformedEnvelopeError` when a verified body is not a usable
webhook.  :func:`outcome_response` turns the final outcome into the status
code and JSON body the caller sees.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from plaidgate.webhook.errors import AuthorizationError, MalformedEnvelopeError
from plaidgate.webhook.router import WebhookRouter
from plaidgate.webhook.types import (
    VERIFICATION_HEADER,
    OutcomeStatus,
    ProcessingOutcome,
    WebhookEnvelope,
)
from plaidgate.webhook.verifier import SignatureVerifier

logger = logging.getLogger(__name__)

UNAUTHORIZED_BODY = {
    "error": "Unauthorized webhook",
    "details": "Webhook signature verification failed",
}


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_envelope(raw_body: bytes) -> WebhookEnvelope:
    """Build a :class:`WebhookEnvelope` from a raw JSON body.

    Raises:
        MalformedEnvelopeError: If the body is not a JSON object or lacks
            string ``webhook_type`` / ``webhook_code`` fields.
    """
    try:
        data = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedEnvelopeError(f"Webhook body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedEnvelopeError("Webhook body must be a JSON object")

    fields: dict[str, Any] = dict(data)
    webhook_type = fields.pop("webhook_type", None)
    webhook_code = fields.pop("webhook_code", None)
    item_id = fields.pop("item_id", None)
    missing = [
        name
        for name, value in (("webhook_type", webhook_type), ("webhook_code", webhook_code))
        if not isinstance(value, str) or not value
    ]
    if missing:
        raise MalformedEnvelopeError(
            f"Missing required webhook field(s): {', '.join(missing)}"
        )

    return WebhookEnvelope(
        type=webhook_type,
        code=webhook_code,
        item_id=item_id if isinstance(item_id, str) else None,
        raw_body=raw_body,
        extra_fields=fields,
    )


class WebhookProcessor:
    """Runs one webhook delivery through verification and routing."""

    def __init__(self, verifier: SignatureVerifier, router: WebhookRouter) -> None:
        self.verifier = verifier
        self.router = router

    async def handle_webhook_request(
        self, raw_body: bytes, headers: Mapping[str, str]
    ) -> ProcessingOutcome:
        """Verify *raw_body* against its assertion header and route it.

        Raises:
            AuthorizationError: Signature verification failed.
            MalformedEnvelopeError: The verified body is not a webhook.
        """
        result = await self.verifier.verify(
            raw_body, get_header(headers, VERIFICATION_HEADER)
        )
        if not result.is_valid:
            raise AuthorizationError(result.failure_reason)

        envelope = parse_envelope(raw_body)
        logger.info(
            "Processing Plaid webhook: webhook_type=%s webhook_code=%s",
            envelope.type,
            envelope.code,
        )
        return await self.router.route(envelope)


def outcome_for_error(exc: Exception) -> ProcessingOutcome:
    """The terminal outcome for a delivery that raised *exc*.

    The rejection reason is kept in ``details`` for logging only;
    :func:`outcome_response` never echoes it.
    """
    if isinstance(exc, AuthorizationError):
        return ProcessingOutcome(
            status=OutcomeStatus.REJECTED, details=exc.reason.value
        )
    return ProcessingOutcome(status=OutcomeStatus.ERROR, details=str(exc))


def outcome_response(outcome: ProcessingOutcome) -> tuple[int, dict]:
    """Map an outcome to ``(status_code, json_body)``.

    Every rejection reason collapses to the same 401 body.
    """
    if outcome.status is OutcomeStatus.PROCESSED:
        return 200, {
            "status": outcome.status.value,
            "webhook_type": outcome.webhook_type,
            "webhook_code": outcome.webhook_code,
        }
    if outcome.status is OutcomeStatus.REJECTED:
        return 401, dict(UNAUTHORIZED_BODY)
    return 500, {
        "error": "Failed to process webhook",
        "details": outcome.details or "",
    }
