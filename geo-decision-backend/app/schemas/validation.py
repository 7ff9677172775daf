# File: app/schemas/validation.py

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, model_validator


REMOTE_SCHEMES = ("s3://", "http://", "https://")

# .../search/concepts/C2021957295-LPCLOUD.html -> "C2021957295-LPCLOUD.html"
CMR_CONCEPT_RE = re.compile(r"/search/concepts/([^/?#]+)")


class InvalidFileReference(ValueError):
    """Raised for an empty locator or one with an unsupported scheme."""


# -----------------------------
# Enums
# -----------------------------

class SourceKind(str, Enum):
    DIRECT = "direct"
    CMR = "cmr"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FileFormat(str, Enum):
    COG = "COG"
    NETCDF = "NetCDF"
    GEOPARQUET = "GeoParquet"
    GRIB = "GRIB"
    HDF5 = "HDF5"
    UNKNOWN = "Unknown"


class SpatialType(str, Enum):
    RASTER = "raster"
    VECTOR = "vector"


# -----------------------------
# File reference
# -----------------------------

class FileReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_kind: SourceKind
    locator: str
    file_name: str
    is_upload: bool = False

    @model_validator(mode="after")
    def check_locator(self) -> "FileReference":
        if not self.locator.strip():
            raise ValueError("locator must not be empty")
        if not self.is_upload and not self.locator.startswith(REMOTE_SCHEMES):
            raise ValueError("locator must start with s3://, http://, or https://")
        return self

    @classmethod
    def from_locator(cls, locator: str) -> "FileReference":
        """
        Build a reference from a user-typed S3/HTTP(S) URL.

        Raises InvalidFileReference before any validation work starts.
        """
        locator = (locator or "").strip()
        if not locator:
            raise InvalidFileReference("Please enter a file URL")
        if not locator.startswith(REMOTE_SCHEMES):
            raise InvalidFileReference("URL must start with s3://, http://, or https://")

        kind = SourceKind.CMR if CMR_CONCEPT_RE.search(locator) else SourceKind.DIRECT
        return cls(source_kind=kind, locator=locator, file_name=final_path_segment(locator))

    @classmethod
    def from_upload(cls, filename: str | None) -> "FileReference":
        name = (filename or "").strip()
        if not name:
            raise InvalidFileReference("Uploaded file has no name")
        name = final_path_segment(name)
        return cls(source_kind=SourceKind.DIRECT, locator=name, file_name=name, is_upload=True)

    @property
    def is_remote(self) -> bool:
        return not self.is_upload

    @property
    def is_s3(self) -> bool:
        return self.locator.startswith("s3://")


def final_path_segment(locator: str) -> str:
    """Last path segment, ignoring any query string or fragment."""
    path = urlsplit(locator).path if "://" in locator else locator
    return path.replace("\\", "/").rstrip("/").split("/")[-1]


# -----------------------------
# Pipeline steps / results
# -----------------------------

class StepTransitionError(RuntimeError):
    """A step was moved backwards or skipped a state."""


_ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING},
    StepStatus.RUNNING: {StepStatus.COMPLETED, StepStatus.FAILED},
    StepStatus.COMPLETED: set(),
    StepStatus.FAILED: set(),
}


class ValidationStep(BaseModel):
    name: str
    status: StepStatus = StepStatus.PENDING
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StepStatus.COMPLETED, StepStatus.FAILED)

    def advance(self, status: StepStatus, message: Optional[str] = None) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise StepTransitionError(
                f"Step '{self.name}' cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if message is not None:
            self.message = message


class DatasetMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_time_dimension: bool
    spatial_type: SpatialType
    has_multiple_bands: bool


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: FileFormat
    is_valid: bool
    is_cloud_optimized: bool
    metadata: DatasetMetadata
    is_cmr: bool = False
    concept_id: Optional[str] = None
    # Verbatim validator response, kept for display
    validation_details: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_invariants(self) -> "ValidationResult":
        if self.is_cloud_optimized and not self.is_valid:
            raise ValueError("is_cloud_optimized requires is_valid")
        if self.is_cmr and not self.concept_id:
            raise ValueError("concept_id is required when is_cmr is true")
        if not self.is_cmr and self.concept_id is not None:
            raise ValueError("concept_id is only allowed when is_cmr is true")
        return self
