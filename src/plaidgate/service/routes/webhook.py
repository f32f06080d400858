"""Inbound Plaid webhook endpoint.

POST /webhook -- verify the ``Plaid-Verification`` assertion, then route.

The body is read as raw bytes: the signed hash covers the exact bytes
Plaid sent, so the payload must never be re-serialized before hashing.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from plaidgate.service.models import WebhookErrorResponse, WebhookResponse
from plaidgate.webhook.errors import AuthorizationError
from plaidgate.webhook.processor import outcome_for_error, outcome_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={401: {"model": WebhookErrorResponse}, 500: {"model": WebhookErrorResponse}},
)
async def handle_webhook(request: Request) -> JSONResponse:
    """Receive a Plaid webhook.  No bearer auth: the JWS is the credential."""
    processor = request.app.state.webhook_processor
    raw_body = await request.body()

    try:
        outcome = await processor.handle_webhook_request(raw_body, request.headers)
    except AuthorizationError as exc:
        outcome = outcome_for_error(exc)
        logger.warning("Rejected unverified webhook: reason=%s", exc.reason.value)
    except Exception as exc:
        outcome = outcome_for_error(exc)
        logger.error("Webhook processing failed: %s", exc, exc_info=True)

    status_code, body = outcome_response(outcome)
    return JSONResponse(status_code=status_code, content=body)
