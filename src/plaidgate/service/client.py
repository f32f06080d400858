"""Async client for the two Plaid API calls the service depends on.

- ``POST /webhook_verification_key/get`` -- JWK used to verify webhooks
- ``POST /categories/get`` -- cheap liveness probe

Every failure surfaces as :class:`~plaidgate.webhook.errors.PlaidAPIError`
with Plaid's ``error_type`` / ``error_code`` copied over, so callers never
inspect httpx objects.

Lifecycle::

    client = PlaidClient.from_settings(settings)
    await client.start()
    ...
    await client.stop()
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from plaidgate.service.config import Settings
from plaidgate.webhook.errors import PlaidAPIError

logger = logging.getLogger(__name__)

PLAID_API_VERSION = "2020-09-14"


class PlaidClient:
    """Thin async wrapper around the Plaid REST API."""

    def __init__(
        self,
        client_id: str,
        secret: str,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._secret = secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> PlaidClient:
        """Build a client from :class:`Settings`.

        Raises:
            ConfigurationError: If Plaid credentials are missing.
        """
        settings.require_plaid_credentials()
        return cls(
            client_id=settings.plaid_client_id,  # type: ignore[arg-type]
            secret=settings.plaid_secret,  # type: ignore[arg-type]
            base_url=settings.plaid_base_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def start(self) -> None:
        """Create the HTTP client.  Call once at application startup."""
        if self._http_client is not None:
            return
        self._http_client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            headers={
                "PLAID-CLIENT-ID": self._client_id,
                "PLAID-SECRET": self._secret,
                "Plaid-Version": PLAID_API_VERSION,
            },
            transport=self._transport,
        )
        logger.info("PlaidClient started for %s", self._base_url)

    async def stop(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("PlaidClient stopped")

    async def __aenter__(self) -> PlaidClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def fetch_verification_key(self, key_id: str) -> dict[str, Any]:
        """Return the JWK Plaid publishes for *key_id*.

        Raises:
            PlaidAPIError: On any provider or transport failure.
        """
        data = await self._post("/webhook_verification_key/get", {"key_id": key_id})
        key = data.get("key")
        if not isinstance(key, dict):
            raise PlaidAPIError(
                "Verification key response has no key",
                error_type="INVALID_RESPONSE",
                error_code="MISSING_KEY",
                request_id=data.get("request_id"),
            )
        logger.info("Fetched webhook verification key kid=%s", key.get("kid", key_id))
        return key

    async def liveness_probe(self) -> dict[str, Any]:
        """Call ``/categories/get`` to confirm Plaid is reachable.

        Returns ``{"categories_count": n}`` on success.

        Raises:
            PlaidAPIError: On any provider or transport failure.
        """
        data = await self._post("/categories/get", {})
        categories = data.get("categories") or []
        return {"categories_count": len(categories)}

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if self._http_client is None:
            await self.start()
        assert self._http_client is not None

        try:
            resp = await self._http_client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise PlaidAPIError(
                f"Timed out calling Plaid {path}",
                error_type="TRANSPORT_ERROR",
                error_code="TIMEOUT",
            ) from exc
        except httpx.HTTPError as exc:
            raise PlaidAPIError(
                f"Could not reach Plaid {path}: {exc}",
                error_type="TRANSPORT_ERROR",
                error_code=type(exc).__name__,
            ) from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.is_success:
            return data

        error = PlaidAPIError(
            data.get("error_message") or f"Plaid {path} returned HTTP {resp.status_code}",
            error_type=data.get("error_type") or "API_ERROR",
            error_code=data.get("error_code") or f"HTTP_{resp.status_code}",
            status_code=resp.status_code,
            request_id=data.get("request_id"),
        )
        logger.error(
            "Plaid %s failed: status=%d error_type=%s error_code=%s request_id=%s",
            path,
            resp.status_code,
            error.error_type,
            error.error_code,
            error.request_id,
        )
        raise error
