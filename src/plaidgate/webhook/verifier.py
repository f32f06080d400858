"""Plaid webhook signature verification.

Every Plaid webhook carries a compact JWS in the ``Plaid-Verification``
header.  The JWS is signed with ES256 by a key Plaid publishes under the
``kid`` named in the JWS header, and its payload holds the SHA-256 hex
digest of the exact request body.  Verification therefore has four
steps:

1. read the unverified JWS header and pick out ``kid``
2. resolve the key through the :class:`~plaidgate.webhook.keys.KeyCache`
3. verify the ES256 signature (python-jose)
4. hash the raw body bytes and compare with ``request_body_sha256``

This module never hand-rolls crypto -- signature checks delegate to
python-jose.
"""

from __future__ import annotations

import dataclasses
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable

from jose import jwk, jws
from jose.exceptions import JOSEError

from plaidgate.webhook.errors import FailureReason
from plaidgate.webhook.keys import KeyCache
from plaidgate.webhook.types import (
    SIGNING_ALGORITHM,
    KeyFetchError,
    SignedAssertion,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# Off unless configured; Plaid suggests five minutes when enabled
DEFAULT_MAX_ASSERTION_AGE: float = 0.0


def body_sha256(raw_body: bytes) -> str:
    """Return the lowercase SHA-256 hex digest of *raw_body*."""
    return hashlib.sha256(raw_body).hexdigest()


def parse_assertion(token: str) -> SignedAssertion:
    """Read the unverified header of a compact JWS.

    Raises:
        JOSEError: If *token* is not a well-formed compact JWS.
    """
    header = jws.get_unverified_header(token)
    return SignedAssertion(
        token=token,
        algorithm=header.get("alg", ""),
        key_id=header.get("kid"),
    )


class SignatureVerifier:
    """Verifies ``Plaid-Verification`` assertions against cached keys.

    Parameters
    ----------
    key_cache:
        Source of verification keys, looked up by the JWS ``kid``.
    max_assertion_age:
        Maximum distance in seconds between the ``iat`` claim and now,
        checked after the body hash.  ``0`` (the default) disables it.
    wall_clock:
        Returns unix seconds; used for ``iat`` and key expiry checks.
    """

    def __init__(
        self,
        key_cache: KeyCache,
        max_assertion_age: float = DEFAULT_MAX_ASSERTION_AGE,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._key_cache = key_cache
        self._max_assertion_age = max_assertion_age
        self._wall_clock = wall_clock

    async def verify(
        self, raw_body: bytes, header_assertion: str | None
    ) -> VerificationResult:
        """Check *header_assertion* against *raw_body*.  Never raises."""
        if not header_assertion:
            return self._reject(FailureReason.MISSING_SIGNATURE)

        try:
            assertion = parse_assertion(header_assertion)
        except JOSEError as exc:
            return self._reject(FailureReason.BAD_SIGNATURE, detail=str(exc))

        if assertion.algorithm != SIGNING_ALGORITHM:
            return self._reject(
                FailureReason.BAD_SIGNATURE,
                key_id=assertion.key_id,
                detail=f"unexpected alg {assertion.algorithm!r}",
            )
        if not isinstance(assertion.key_id, str) or not assertion.key_id:
            return self._reject(FailureReason.BAD_SIGNATURE, detail="no usable kid")

        key_set = await self._key_cache.get_verification_key(assertion.key_id)
        if isinstance(key_set, KeyFetchError):
            return self._reject(
                FailureReason.KEY_UNAVAILABLE,
                key_id=assertion.key_id,
                detail=key_set.error_code,
            )
        if key_set.is_expired(self._wall_clock()):
            return self._reject(
                FailureReason.KEY_UNAVAILABLE,
                key_id=assertion.key_id,
                detail="key expired",
            )

        try:
            public_key = jwk.construct(key_set.public_key_material, SIGNING_ALGORITHM)
        except (JOSEError, ValueError, TypeError) as exc:
            return self._reject(
                FailureReason.KEY_UNAVAILABLE,
                key_id=assertion.key_id,
                detail=f"unusable key: {exc}",
            )

        try:
            payload = jws.verify(
                header_assertion, public_key, algorithms=[SIGNING_ALGORITHM]
            )
            claims = json.loads(payload)
        except (JOSEError, ValueError) as exc:
            return self._reject(
                FailureReason.BAD_SIGNATURE, key_id=assertion.key_id, detail=str(exc)
            )
        if not isinstance(claims, dict):
            return self._reject(
                FailureReason.BAD_SIGNATURE,
                key_id=assertion.key_id,
                detail="claims are not an object",
            )
        assertion = dataclasses.replace(assertion, claims=claims)

        claimed = assertion.body_hash
        if not isinstance(claimed, str) or not hmac.compare_digest(
            body_sha256(raw_body).encode("ascii"), claimed.encode("utf-8")
        ):
            return self._reject(
                FailureReason.BODY_HASH_MISMATCH, key_id=assertion.key_id
            )

        if self._max_assertion_age > 0 and not self._is_recent(claims.get("iat")):
            return self._reject(FailureReason.STALE_ASSERTION, key_id=assertion.key_id)

        return VerificationResult.ok()

    def _is_recent(self, issued_at: object) -> bool:
        if isinstance(issued_at, bool) or not isinstance(issued_at, (int, float)):
            return False
        age = abs(self._wall_clock() - issued_at)
        return age <= self._max_assertion_age

    @staticmethod
    def _reject(
        reason: FailureReason,
        key_id: str | None = None,
        detail: str | None = None,
    ) -> VerificationResult:
        logger.warning(
            "Webhook verification failed: reason=%s kid=%s detail=%s",
            reason.value,
            key_id,
            detail,
        )
        return VerificationResult.failed(reason)
