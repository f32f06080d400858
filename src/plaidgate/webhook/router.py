"""Two-level webhook dispatch: ``webhook_type`` then ``webhook_code``.

The router classifies and logs every verified webhook, then hands it to
whatever handlers the application registered for that ``(type, code)``
pair.  Unknown types and codes are logged and treated as processed so
that new Plaid event categories never turn into delivery failures.

Handlers may see the same event more than once: Plaid retries failed
deliveries and does not order them across items.  Registered handlers
must be idempotent for a given ``(type, code, item_id)``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from plaidgate.webhook.types import ProcessingOutcome, WebhookEnvelope, WebhookType

logger = logging.getLogger(__name__)

# Handler signature: async (envelope) -> None
WebhookHandler = Callable[[WebhookEnvelope], Awaitable[None]]

KNOWN_CODES: dict[WebhookType, frozenset[str]] = {
    WebhookType.TRANSACTIONS: frozenset(
        {
            "SYNC_UPDATES_AVAILABLE",
            "DEFAULT_UPDATE",
            "INITIAL_UPDATE",
            "HISTORICAL_UPDATE",
            "TRANSACTIONS_REMOVED",
            "RECURRING_TRANSACTIONS_UPDATE",
        }
    ),
    WebhookType.ITEM: frozenset(
        {
            "ERROR",
            "PENDING_EXPIRATION",
            "PENDING_DISCONNECT",
            "USER_PERMISSION_REVOKED",
            "USER_ACCOUNT_REVOKED",
            "WEBHOOK_UPDATE_ACKNOWLEDGED",
            "NEW_ACCOUNTS_AVAILABLE",
            "LOGIN_REPAIRED",
        }
    ),
    WebhookType.AUTH: frozenset(
        {"AUTOMATICALLY_VERIFIED", "VERIFICATION_EXPIRED", "DEFAULT_UPDATE"}
    ),
    WebhookType.ASSETS: frozenset({"PRODUCT_READY", "ERROR"}),
    WebhookType.HOLDINGS: frozenset({"DEFAULT_UPDATE"}),
    WebhookType.LIABILITIES: frozenset({"DEFAULT_UPDATE"}),
}


class WebhookRegistry:
    """Registry of async handlers keyed by ``(webhook_type, webhook_code)``.

    Usage::

        registry = WebhookRegistry()

        @registry.on(WebhookType.TRANSACTIONS, "SYNC_UPDATES_AVAILABLE")
        async def sync_item(envelope: WebhookEnvelope) -> None:
            ...

        @registry.on(WebhookType.ITEM)  # every ITEM code
        async def audit_item(envelope: WebhookEnvelope) -> None:
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, str | None], list[WebhookHandler]] = {}

    def register(
        self,
        webhook_type: WebhookType | str,
        handler: WebhookHandler,
        code: str | None = None,
    ) -> None:
        """Attach *handler* to *webhook_type* (and *code*, if given)."""
        if isinstance(webhook_type, WebhookType):
            webhook_type = webhook_type.value
        key = (webhook_type, code)
        self._handlers.setdefault(key, []).append(handler)
        logger.info(
            "Registered webhook handler %s for %s/%s",
            getattr(handler, "__name__", repr(handler)),
            key[0],
            code or "*",
        )

    def on(
        self, webhook_type: WebhookType | str, code: str | None = None
    ) -> Callable[[WebhookHandler], WebhookHandler]:
        """Decorator form of :meth:`register`."""

        def decorator(fn: WebhookHandler) -> WebhookHandler:
            self.register(webhook_type, fn, code=code)
            return fn

        return decorator

    def handlers_for(self, webhook_type: str, code: str) -> list[WebhookHandler]:
        """Exact-code handlers first, then category-wide ones."""
        return [
            *self._handlers.get((webhook_type, code), []),
            *self._handlers.get((webhook_type, None), []),
        ]

    def __len__(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())


class WebhookRouter:
    """Dispatches verified envelopes to per-category observation and handlers."""

    def __init__(self, registry: WebhookRegistry | None = None) -> None:
        self.registry = registry if registry is not None else WebhookRegistry()
        self._categories: dict[WebhookType, Callable[[WebhookEnvelope], None]] = {
            WebhookType.TRANSACTIONS: self._observe_transactions,
            WebhookType.ITEM: self._observe_item,
            WebhookType.AUTH: self._observe_auth,
            WebhookType.ASSETS: self._observe_generic,
            WebhookType.HOLDINGS: self._observe_generic,
            WebhookType.LIABILITIES: self._observe_generic,
        }

    async def route(self, envelope: WebhookEnvelope) -> ProcessingOutcome:
        """Classify *envelope* and run its handlers.

        Handler exceptions propagate so the delivery is reported as
        failed and Plaid retries it.
        """
        category = envelope.webhook_type
        if category is None:
            logger.warning(
                "Unknown webhook type: type=%s code=%s item_id=%s",
                envelope.type,
                envelope.code,
                envelope.item_id,
            )
        elif envelope.code not in KNOWN_CODES[category]:
            logger.warning(
                "Unhandled webhook code: type=%s code=%s item_id=%s",
                envelope.type,
                envelope.code,
                envelope.item_id,
            )
        else:
            self._categories[category](envelope)

        for handler in self.registry.handlers_for(envelope.type, envelope.code):
            await handler(envelope)

        return ProcessingOutcome.processed(envelope)

    # ------------------------------------------------------------------
    # Per-category observation
    # ------------------------------------------------------------------

    def _observe_transactions(self, envelope: WebhookEnvelope) -> None:
        extra = envelope.extra_fields
        if envelope.code == "TRANSACTIONS_REMOVED":
            removed = extra.get("removed_transactions") or []
            logger.info(
                "Transactions removed: item_id=%s count=%d",
                envelope.item_id,
                len(removed),
            )
        elif envelope.code == "SYNC_UPDATES_AVAILABLE":
            logger.info(
                "Transaction sync updates available: item_id=%s "
                "initial_complete=%s historical_complete=%s",
                envelope.item_id,
                extra.get("initial_update_complete"),
                extra.get("historical_update_complete"),
            )
        else:
            # Legacy /transactions/get webhooks
            logger.info(
                "Processing transaction webhook: item_id=%s code=%s new_transactions=%s",
                envelope.item_id,
                envelope.code,
                extra.get("new_transactions"),
            )

    def _observe_item(self, envelope: WebhookEnvelope) -> None:
        if envelope.code == "ERROR":
            error = envelope.extra_fields.get("error") or {}
            logger.warning(
                "Item error: item_id=%s error_type=%s error_code=%s",
                envelope.item_id,
                error.get("error_type") if isinstance(error, dict) else None,
                error.get("error_code") if isinstance(error, dict) else None,
            )
        elif envelope.code == "PENDING_EXPIRATION":
            logger.info(
                "Item consent expiring: item_id=%s consent_expiration_time=%s",
                envelope.item_id,
                envelope.extra_fields.get("consent_expiration_time"),
            )
        else:
            logger.info(
                "Processing item webhook: item_id=%s code=%s",
                envelope.item_id,
                envelope.code,
            )

    def _observe_auth(self, envelope: WebhookEnvelope) -> None:
        logger.info(
            "Processing auth webhook: item_id=%s account_id=%s code=%s",
            envelope.item_id,
            envelope.extra_fields.get("account_id"),
            envelope.code,
        )

    def _observe_generic(self, envelope: WebhookEnvelope) -> None:
        logger.info(
            "Processing %s webhook: item_id=%s code=%s",
            envelope.type.lower(),
            envelope.item_id,
            envelope.code,
        )
