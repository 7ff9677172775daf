# File: app/core/config.py

import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, field_validator


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> List[str]:
    return [i.strip() for i in os.getenv(name, default).split(",") if i.strip()]


class Settings(BaseModel):
    # Basic app info
    PROJECT_NAME: str = "Geospatial Dataset Decision API"
    VERSION: str = "0.1.0"

    api_v1_prefix: str = "/api/v1"

    # CORS
    backend_cors_origins: List[str] = _env_list(
        "BACKEND_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )

    # Remote COG validator (GET <url>?url=<encoded locator>)
    cog_validator_url: str = os.getenv(
        "COG_VALIDATOR_URL", "https://openveda.cloud/api/raster/cog/validate"
    )
    cog_validator_timeout: float = float(os.getenv("COG_VALIDATOR_TIMEOUT", "30"))

    # Opt-in HEAD request for http(s) locators during the accessibility check
    accessibility_probe: bool = _env_flag("ACCESSIBILITY_PROBE")

    # UI pacing between stages; 0 resolves each stage as soon as its work is done
    step_delay_seconds: float = float(os.getenv("STEP_DELAY_SECONDS", "0"))

    # Downstream visualization services
    titiler_cmr_base: str = os.getenv(
        "TITILER_CMR_BASE", "https://staging.openveda.cloud/api/titiler-cmr/"
    )
    titiler_cmr_docs: str = os.getenv(
        "TITILER_CMR_DOCS", "https://staging.openveda.cloud/api/titiler-cmr/api.html"
    )
    raster_api_base: str = os.getenv("RASTER_API_BASE", "https://openveda.cloud/api/raster/")
    raster_api_docs: str = os.getenv("RASTER_API_DOCS", "https://openveda.cloud/api/raster/docs")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = _env_flag("LOG_JSON")

    @field_validator("backend_cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
