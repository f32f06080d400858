"""FastAPI application factory for the Plaid broker service."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from plaidgate.service.client import PlaidClient
from plaidgate.service.config import Settings
from plaidgate.webhook.keys import KeyCache
from plaidgate.webhook.processor import WebhookProcessor
from plaidgate.webhook.router import WebhookRegistry, WebhookRouter
from plaidgate.webhook.verifier import SignatureVerifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the Plaid client and webhook pipeline for the app lifetime."""
    settings: Settings = app.state.settings

    plaid_client: PlaidClient | None = app.state.plaid_client
    if plaid_client is None:
        plaid_client = PlaidClient.from_settings(settings)
        app.state.plaid_client = plaid_client
    await plaid_client.start()

    # One key cache per app, never a module global
    key_cache = KeyCache(
        fetcher=plaid_client.fetch_verification_key,
        ttl=settings.key_cache_ttl_seconds,
        fetch_timeout=settings.key_fetch_timeout,
    )
    verifier = SignatureVerifier(
        key_cache, max_assertion_age=settings.max_assertion_age
    )
    router = WebhookRouter(app.state.webhook_registry)
    app.state.key_cache = key_cache
    app.state.webhook_processor = WebhookProcessor(verifier, router)
    app.state.startup_time = time.monotonic()
    logger.info(
        "Webhook pipeline ready (key ttl=%ss, %d handler(s) registered)",
        settings.key_cache_ttl_seconds,
        len(app.state.webhook_registry),
    )

    yield

    await plaid_client.stop()


def create_app(
    settings: Settings | None = None,
    plaid_client: PlaidClient | None = None,
    registry: WebhookRegistry | None = None,
) -> FastAPI:
    """Create and configure the service FastAPI application.

    *plaid_client* and *registry* are injectable so the surrounding
    application can attach webhook handlers and tests can stub Plaid.
    When *plaid_client* is omitted it is built from *settings* at
    startup, which fails fast on missing Plaid credentials.
    """
    settings = settings or Settings()

    # Configure logging from settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.debug:
        logging.getLogger("plaidgate").setLevel(logging.DEBUG)

    app = FastAPI(
        title="Plaid Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.plaid_client = plaid_client
    app.state.webhook_registry = registry if registry is not None else WebhookRegistry()

    # Consistent JSON error shape: {"error": "<code>", "detail": "<message>"}
    _STATUS_TO_ERROR = {
        400: "bad_request",
        401: "unauthorized",
        404: "not_found",
        405: "method_not_allowed",
        422: "validation_error",
        503: "service_unavailable",
    }

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": _STATUS_TO_ERROR.get(exc.status_code, "error"),
                "detail": exc.detail,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_error",
                "detail": str(exc),
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from plaidgate.service.routes.health import router as health_router
    from plaidgate.service.routes.webhook import router as webhook_router

    app.include_router(webhook_router)
    app.include_router(health_router)

    return app
