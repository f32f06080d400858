"""Pydantic response models for the service REST API."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    version: str


class ProviderError(BaseModel):
    error_type: str
    error_code: str
    message: str


class ConnectionResponse(BaseModel):
    status: str
    environment: str | None = None
    categories_count: int | None = None
    error: ProviderError | None = None


class WebhookResponse(BaseModel):
    status: str
    webhook_type: str | None = None
    webhook_code: str | None = None


class WebhookErrorResponse(BaseModel):
    error: str
    details: str
