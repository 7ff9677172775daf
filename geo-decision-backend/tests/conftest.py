# File: tests/conftest.py

"""
Shared fixtures.

Outbound HTTP never leaves the process: the COG validator is an
httpx.MockTransport whose answer each test chooses.
"""

from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_http_transport
from app.core.config import Settings
from app.gis.cog_utils import CogValidatorClient
from app.main import app
from app.services.validation_service import ValidationPipeline

VALIDATOR_URL = "https://validator.test/cog/validate"


def json_responder(payload, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)
    return handler


class RecordingTransport(httpx.MockTransport):
    """MockTransport that also remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        cog_validator_url=VALIDATOR_URL,
        cog_validator_timeout=2.0,
        step_delay_seconds=0.0,
        accessibility_probe=False,
    )


@pytest.fixture
def make_pipeline(test_settings):
    """Build ``(pipeline, transport)`` whose validator answers with ``handler``."""

    def factory(handler, **kwargs):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=transport)
        validator = CogValidatorClient(
            client,
            validator_url=test_settings.cog_validator_url,
            timeout=test_settings.cog_validator_timeout,
        )
        return ValidationPipeline(validator, http_client=client, **kwargs), transport

    return factory


@pytest.fixture
def api_client():
    """
    TestClient with a swappable validator answer:

        client, use = api_client
        use(json_responder({"COG": True}))
    """
    state = {"handler": json_responder({"COG": True})}

    def transport_override():
        return httpx.MockTransport(lambda request: state["handler"](request))

    def use(handler):
        state["handler"] = handler

    app.dependency_overrides[get_http_transport] = transport_override
    with TestClient(app) as client:
        yield client, use
    app.dependency_overrides.clear()
