"""plaidgate CLI -- run the service and poke at the Plaid API.

Thin wrapper around the service modules using click.
"""

from __future__ import annotations

import asyncio
import json
from typing import NoReturn

import click

from plaidgate.service.client import PlaidClient
from plaidgate.service.config import Settings
from plaidgate.webhook.errors import ConfigurationError, PlaidAPIError


def _error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit 1."""
    click.echo(msg, err=True)
    raise SystemExit(1)


def _client() -> PlaidClient:
    try:
        return PlaidClient.from_settings(Settings())
    except ConfigurationError as exc:
        _error(f"Error: {exc}")


@click.group()
@click.version_option(package_name="plaidgate")
def cli() -> None:
    """plaidgate -- Plaid API broker and webhook receiver."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: PLAIDGATE_HOST).")
@click.option("--port", "-p", type=int, default=None, help="Port (default: PLAIDGATE_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP service under uvicorn."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "plaidgate.service.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def probe() -> None:
    """Check that the configured Plaid environment answers."""
    plaid = _client()

    async def _run() -> dict:
        async with plaid as client:
            return await client.liveness_probe()

    try:
        result = asyncio.run(_run())
    except PlaidAPIError as exc:
        _error(f"Plaid unreachable: {exc.error_type} {exc.error_code}: {exc.message}")
    click.echo(f"Plaid reachable ({result['categories_count']} categories)")


@cli.command("fetch-key")
@click.argument("key_id")
def fetch_key(key_id: str) -> None:
    """Print the webhook verification JWK for KEY_ID."""
    plaid = _client()

    async def _run() -> dict:
        async with plaid as client:
            return await client.fetch_verification_key(key_id)

    try:
        key = asyncio.run(_run())
    except PlaidAPIError as exc:
        _error(f"Key fetch failed: {exc.error_type} {exc.error_code}: {exc.message}")
    click.echo(json.dumps(key, indent=2, sort_keys=True))


if __name__ == "__main__":
    cli()
