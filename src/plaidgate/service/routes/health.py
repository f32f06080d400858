"""Health check endpoints.

- ``GET /health`` -- Simple liveness check, no Plaid call.
- ``GET /validate-connection`` -- Confirms Plaid is reachable via ``/categories/get``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from plaidgate import __version__
from plaidgate.service.models import ConnectionResponse, HealthResponse, ProviderError
from plaidgate.webhook.errors import PlaidAPIError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return service status. No authentication required."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=request.app.state.settings.service_name,
        version=__version__,
    )


@router.get(
    "/validate-connection",
    response_model=ConnectionResponse,
    responses={503: {"model": ConnectionResponse}},
)
async def validate_connection(request: Request) -> JSONResponse:
    """Probe Plaid and report whether the configured environment answers."""
    settings = request.app.state.settings
    plaid_client = request.app.state.plaid_client

    try:
        probe = await plaid_client.liveness_probe()
    except PlaidAPIError as exc:
        logger.warning(
            "Plaid liveness probe failed: %s %s", exc.error_type, exc.error_code
        )
        body = ConnectionResponse(
            status="disconnected",
            environment=settings.plaid_env,
            error=ProviderError(**exc.to_dict()),
        )
        return JSONResponse(status_code=503, content=body.model_dump(exclude_none=True))

    body = ConnectionResponse(
        status="connected",
        environment=settings.plaid_env,
        categories_count=probe.get("categories_count"),
    )
    return JSONResponse(status_code=200, content=body.model_dump(exclude_none=True))
