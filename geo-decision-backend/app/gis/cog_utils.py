# File: app/gis/cog_utils.py

"""
COG (Cloud-Optimized GeoTIFF) helpers.

This module:
  - Calls the remote COG validator (GET <validator>?url=<locator>)
  - Optionally probes an HTTP(S) locator with a HEAD request

Both take an injected httpx.AsyncClient so the caller owns its lifetime.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)

VALID_COG_MESSAGE = "Valid COG structure with proper tiling"
INVALID_COG_MESSAGE = "File is not a valid Cloud Optimized GeoTIFF"


class CogValidationError(Exception):
    """Validator unreachable, timed out, non-2xx, or returned malformed JSON."""


class AccessibilityError(Exception):
    """A HEAD probe against the locator failed."""


@dataclass(frozen=True)
class CogValidation:
    is_valid: bool
    message: str
    details: Dict[str, Any]


class CogValidatorClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        validator_url: str,
        timeout: float = 30.0,
    ) -> None:
        self.client = client
        self.validator_url = validator_url
        self.timeout = timeout

    async def validate(self, locator: str) -> CogValidation:
        """
        Ask the remote validator whether ``locator`` is a COG.

        A truthy ``COG`` field means valid. The whole response body is
        returned as ``details``.

        Raises:
            CogValidationError: on timeout, transport error, non-2xx,
                or a body that is not a JSON object with a ``COG`` key.
        """
        logger.info("Validating COG via %s: %s", self.validator_url, locator)
        try:
            resp = await self.client.get(
                self.validator_url,
                params={"url": locator},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise CogValidationError(
                f"COG validator timed out after {self.timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise CogValidationError(str(exc) or exc.__class__.__name__) from exc

        if not resp.is_success:
            raise CogValidationError(f"API returned {resp.status_code}: {resp.reason_phrase}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise CogValidationError("COG validator returned malformed JSON") from exc

        if not isinstance(data, dict) or "COG" not in data:
            raise CogValidationError("COG validator response is missing the 'COG' field")

        is_cog = bool(data["COG"])
        return CogValidation(
            is_valid=is_cog,
            message=VALID_COG_MESSAGE if is_cog else INVALID_COG_MESSAGE,
            details=data,
        )


async def probe_locator(client: httpx.AsyncClient, url: str, *, timeout: float = 10.0) -> int:
    """
    HEAD an http(s) locator and return its status code.

    Raises AccessibilityError for transport failures and non-2xx answers.
    """
    try:
        resp = await client.head(url, follow_redirects=True, timeout=timeout)
    except httpx.HTTPError as exc:
        raise AccessibilityError(str(exc) or exc.__class__.__name__) from exc
    if not resp.is_success:
        raise AccessibilityError(f"HEAD returned {resp.status_code}: {resp.reason_phrase}")
    return resp.status_code
