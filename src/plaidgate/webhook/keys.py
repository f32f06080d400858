"""Time-limited cache of Plaid webhook verification keys.

Keys are fetched lazily per ``kid`` and served from memory until their
TTL lapses.  A failed refresh never evicts what is already cached and
never raises: callers get a :class:`KeyFetchError` value instead.

Uses ``time.monotonic()`` for freshness so clock adjustments don't
cause spurious refetches.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from plaidgate.webhook.errors import PlaidAPIError
from plaidgate.webhook.types import KeyFetchError, VerificationKeySet

logger = logging.getLogger(__name__)

# Signature: async (key_id) -> JWK dict as returned by /webhook_verification_key/get
KeyFetcher = Callable[[str], Awaitable[dict[str, Any]]]

DEFAULT_TTL_SECONDS: float = 3600.0
DEFAULT_FETCH_TIMEOUT: float = 10.0


def _expiry(value: Any) -> int | None:
    """Normalise Plaid's ``expired_at`` to unix seconds or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    if value is not None:
        logger.warning("Ignoring unreadable key expired_at=%r", value)
    return None


class KeyCache:
    """Per-``kid`` cache over a key fetcher.

    Concurrent misses for the same key id share a single in-flight
    fetch.  Several key ids may be cached at once, which covers the
    overlap window while Plaid rotates its signing key.
    """

    def __init__(
        self,
        fetcher: KeyFetcher,
        ttl: float = DEFAULT_TTL_SECONDS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self._entries: dict[str, VerificationKeySet] = {}
        self._inflight: dict[str, asyncio.Task] = {}  # type: ignore[type-arg]

    @property
    def ttl(self) -> float:
        return self._ttl

    def peek(self, key_id: str) -> VerificationKeySet | None:
        """Return the cached entry for *key_id* without freshness checks."""
        return self._entries.get(key_id)

    def invalidate(self, key_id: str | None = None) -> None:
        """Drop one cached key, or all of them when *key_id* is ``None``."""
        if key_id is None:
            self._entries.clear()
        else:
            self._entries.pop(key_id, None)

    async def get_verification_key(
        self, key_id: str
    ) -> VerificationKeySet | KeyFetchError:
        """Return a fresh key for *key_id*, fetching it if needed.

        Never raises.  On failure the previous entry (if any) stays in
        the cache untouched.
        """
        cached = self._entries.get(key_id)
        if cached is not None and cached.is_fresh(self._clock()):
            return cached

        task = self._inflight.get(key_id)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key_id))
            self._inflight[key_id] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key_id, None))
        return await asyncio.shield(task)

    async def _refresh(self, key_id: str) -> VerificationKeySet | KeyFetchError:
        try:
            jwk = await asyncio.wait_for(
                self._fetcher(key_id), timeout=self._fetch_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Verification key fetch for kid=%s timed out after %.1fs",
                key_id,
                self._fetch_timeout,
            )
            return KeyFetchError(
                key_id=key_id,
                error_type="TIMEOUT",
                error_code="KEY_FETCH_TIMEOUT",
                message=f"Key fetch timed out after {self._fetch_timeout}s",
            )
        except PlaidAPIError as exc:
            logger.warning(
                "Verification key fetch for kid=%s failed: %s %s",
                key_id,
                exc.error_type,
                exc.error_code,
            )
            return KeyFetchError(
                key_id=key_id,
                error_type=exc.error_type,
                error_code=exc.error_code,
                message=exc.message,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Verification key fetch for kid=%s failed: %s", key_id, exc
            )
            return KeyFetchError(
                key_id=key_id,
                error_type="TRANSPORT_ERROR",
                error_code=type(exc).__name__,
                message=str(exc),
            )
        except Exception as exc:
            logger.warning(
                "Unexpected error fetching verification key kid=%s",
                key_id,
                exc_info=True,
            )
            return KeyFetchError(
                key_id=key_id,
                error_type="UNKNOWN_ERROR",
                error_code=type(exc).__name__,
                message=str(exc),
            )

        if not isinstance(jwk, dict) or not jwk:
            logger.warning("Empty verification key returned for kid=%s", key_id)
            return KeyFetchError(
                key_id=key_id,
                error_type="INVALID_RESPONSE",
                error_code="EMPTY_KEY",
                message="Provider returned no key material",
            )

        entry = VerificationKeySet(
            key_id=key_id,
            public_key_material=jwk,
            fetched_at=self._clock(),
            ttl=self._ttl,
            expired_at=_expiry(jwk.get("expired_at")),
        )
        self._entries[key_id] = entry
        logger.debug("Cached verification key kid=%s (ttl=%ss)", key_id, self._ttl)
        return entry
