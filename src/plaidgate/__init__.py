"""plaidgate -- Plaid API broker with verified webhook ingestion.

Top-level convenience re-exports::

    from plaidgate import WebhookRegistry, WebhookType
    from plaidgate.webhook import SignatureVerifier, KeyCache  # core pieces
"""

__version__ = "1.0.0"

from plaidgate.webhook import WebhookEnvelope, WebhookRegistry, WebhookType

__all__ = ["__version__", "WebhookEnvelope", "WebhookRegistry", "WebhookType"]
