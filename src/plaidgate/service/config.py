"""Service configuration from environment variables."""

from __future__ import annotations

import os

from plaidgate.webhook.errors import ConfigurationError

PLAID_ENVIRONMENTS: dict[str, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


class Settings:
    """Service settings, read from environment variables with defaults."""

    def __init__(self) -> None:
        self.service_name: str = os.getenv(
            "PLAIDGATE_SERVICE_NAME", "lipaworld-plaid-service"
        )
        self.plaid_client_id: str | None = os.getenv("PLAID_CLIENT_ID")
        self.plaid_secret: str | None = os.getenv("PLAID_SECRET")
        self.plaid_env: str | None = os.getenv("PLAID_ENV")
        self.host: str = os.getenv("PLAIDGATE_HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PLAIDGATE_PORT", "8000"))
        self.cors_origins: str = os.getenv("PLAIDGATE_CORS_ORIGINS", "*")
        self.log_level: str = os.getenv("PLAIDGATE_LOG_LEVEL", "INFO").upper()
        self.debug: bool = os.getenv("PLAIDGATE_DEBUG", "").lower() in ("1", "true", "yes")
        self.http_timeout: float = float(os.getenv("PLAIDGATE_HTTP_TIMEOUT", "30.0"))
        # Webhook verification
        self.key_cache_ttl_seconds: float = float(
            os.getenv("PLAIDGATE_KEY_CACHE_TTL_SECONDS", "3600")
        )
        self.key_fetch_timeout: float = float(
            os.getenv("PLAIDGATE_KEY_FETCH_TIMEOUT", "10.0")
        )
        self.max_assertion_age: float = float(
            os.getenv("PLAIDGATE_MAX_ASSERTION_AGE", "0")
        )

    @property
    def plaid_base_url(self) -> str:
        """Base URL for the configured Plaid environment."""
        self.require_plaid_credentials()
        return PLAID_ENVIRONMENTS[self.plaid_env]  # type: ignore[index]

    def require_plaid_credentials(self) -> None:
        """Raise :class:`ConfigurationError` unless Plaid is fully configured."""
        if not self.plaid_client_id or not self.plaid_secret or not self.plaid_env:
            raise ConfigurationError("Missing required Plaid configuration")
        if self.plaid_env not in PLAID_ENVIRONMENTS:
            raise ConfigurationError(
                f"Unknown PLAID_ENV {self.plaid_env!r}; expected one of "
                f"{', '.join(PLAID_ENVIRONMENTS)}"
            )
