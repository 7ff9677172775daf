# File: app/api/deps.py

from typing import Optional

import httpx

from app.core.config import Settings
from app.gis.cog_utils import CogValidatorClient
from app.services.validation_service import ValidationPipeline


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """
    FastAPI dependency for the outbound HTTP transport.

    None means httpx's default network transport; tests override this
    with an httpx.MockTransport.
    """
    return None


def open_http_client(
    transport: Optional[httpx.AsyncBaseTransport],
    settings: Settings,
) -> httpx.AsyncClient:
    """
    Client for one validation run. Use as ``async with``; it is opened
    inside the route (or the streaming generator) so it outlives the
    whole run.
    """
    return httpx.AsyncClient(
        transport=transport,
        timeout=settings.cog_validator_timeout,
    )


def build_pipeline(client: httpx.AsyncClient, settings: Settings) -> ValidationPipeline:
    validator = CogValidatorClient(
        client,
        validator_url=settings.cog_validator_url,
        timeout=settings.cog_validator_timeout,
    )
    return ValidationPipeline(
        validator,
        http_client=client,
        step_delay=settings.step_delay_seconds,
        probe_accessibility=settings.accessibility_probe,
    )
