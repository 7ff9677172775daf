# File: app/schemas/recommendation.py

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, computed_field

from app.schemas.validation import FileFormat, FileReference, ValidationResult, ValidationStep


class ApiEndpoint(BaseModel):
    """
    URL template for a live tile / query endpoint.

    Placeholders such as {z}/{x}/{y}, {concept_id}, {url},
    {minx},{miny},{maxx},{maxy} and {datetime} are left for the caller
    to substitute; they are never escaped here.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    description: str
    base: str
    pattern: str
    example_url: str


class ServiceRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    description: str
    recommended: bool
    use_case: str
    limitations: List[str] = []
    endpoints: List[ApiEndpoint] = []
    docs_url: Optional[str] = None

    @computed_field
    @property
    def api_endpoint(self) -> Optional[ApiEndpoint]:
        return self.endpoints[0] if self.endpoints else None


# -----------------------------
# Request / response bodies
# -----------------------------

class LocatorRequest(BaseModel):
    locator: str


class RecommendationRequest(BaseModel):
    file_reference: FileReference
    validation_result: ValidationResult


class RecommendationResponse(BaseModel):
    items: List[ServiceRecommendation]
    total: int


class ValidationRunResponse(BaseModel):
    file_reference: FileReference
    steps: List[ValidationStep]
    result: ValidationResult


class FileSummary(BaseModel):
    file_name: str
    format: FileFormat
    cloud_optimized: bool
    time_dimension: bool
    source: str
    concept_id: Optional[str] = None


class DecisionReport(BaseModel):
    file_reference: FileReference
    summary: FileSummary
    steps: List[ValidationStep]
    result: ValidationResult
    recommendations: List[ServiceRecommendation]
    validation_details: Optional[Dict[str, Any]] = None
