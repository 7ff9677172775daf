# app/services/recommendation_service.py
"""
Visualization-service recommendations.

``recommend()`` is a pure function of the file reference and its
validation result. Rules run in a fixed order and candidates come back in
that order; ``recommended`` marks the primary suggestion but is never
used to re-sort.

  1. CMR dataset         -> titiler-cmr only
  2. vector              -> tipg
  3. COG / static raster -> titiler-pgstac
  4. gridded format      -> titiler-multidim (time) or conversion
"""

from typing import List, Optional
from urllib.parse import quote

from app.core.config import Settings, get_settings
from app.gis.formats import GRIDDED_FORMATS
from app.schemas.recommendation import (
    ApiEndpoint,
    DecisionReport,
    FileSummary,
    ServiceRecommendation,
)
from app.schemas.validation import (
    FileFormat,
    FileReference,
    SpatialType,
    ValidationResult,
)
from app.services.validation_service import ValidationSession


TITILER_CMR_LIMITATIONS = [
    "GRIB files are only supported through role-based band selection",
    "Hierarchical (grouped) datasets are not supported",
    "Some datasets with unusual (\"quirky\") structure are not supported",
]

TIPG_LIMITATIONS = [
    "Rendering high-resolution data at low zoom levels can be slow",
    "Generating time series over large areas can be slow",
]


# -----------------------------
# Individual services
# -----------------------------

def _titiler_cmr(result: ValidationResult, settings: Settings) -> ServiceRecommendation:
    base = settings.titiler_cmr_base
    concept_id = result.concept_id

    endpoints = [
        ApiEndpoint(
            name="visualization",
            title="Visualization",
            description="Tile-based visualization",
            base=base,
            pattern="tiles/WebMercatorQuad/{z}/{x}/{y}.png?concept_id={concept_id}",
            example_url=f"{base}tiles/WebMercatorQuad/{{z}}/{{x}}/{{y}}.png?concept_id={concept_id}",
        ),
        ApiEndpoint(
            name="statistics",
            title="Statistics",
            description="Generate statistical summaries for the dataset",
            base=base,
            pattern="statistics?concept_id={concept_id}&datetime={datetime}",
            example_url=f"{base}statistics?concept_id={concept_id}&datetime=2020-01-01",
        ),
    ]

    if result.metadata.has_time_dimension:
        endpoints += [
            ApiEndpoint(
                name="time-series-visualization",
                title="Time Series Visualization",
                description="Visualize time series data for a bounding box",
                base=base,
                pattern="timeseries/bbox/{minx},{miny},{maxx},{maxy}.{format}?concept_id={concept_id}",
                example_url=(
                    f"{base}timeseries/bbox/{{minx}},{{miny}},{{maxx}},{{maxy}}.png"
                    f"?concept_id={concept_id}"
                ),
            ),
            ApiEndpoint(
                name="time-series-statistics",
                title="Time Series Statistics",
                description="Generate statistics over time for multiple dates",
                base=base,
                pattern="timeseries/statistics?concept_id={concept_id}&datetime={datetime}",
                example_url=(
                    f"{base}timeseries/statistics?concept_id={concept_id}"
                    "&datetime=2020-01-01/2020-12-31"
                ),
            ),
        ]

    return ServiceRecommendation(
        name="titiler-cmr",
        title="Titiler-CMR",
        description="Earthdata Cloud datasets via CMR",
        recommended=True,
        use_case="Best for data on Earthdata Cloud with CMR integration",
        limitations=list(TITILER_CMR_LIMITATIONS),
        endpoints=endpoints,
        docs_url=settings.titiler_cmr_docs,
    )


def _tipg() -> ServiceRecommendation:
    return ServiceRecommendation(
        name="tipg",
        title="TiPg (OGC Features API)",
        description="Serve vector data via OGC Features API",
        recommended=True,
        use_case="Interactive visualization for GeoParquet and other vector formats",
        limitations=list(TIPG_LIMITATIONS),
    )


def _titiler_pgstac(
    ref: FileReference,
    result: ValidationResult,
    settings: Settings,
) -> ServiceRecommendation:
    is_cog = result.format == FileFormat.COG
    endpoints: List[ApiEndpoint] = []

    if is_cog and not result.is_cmr:
        base = settings.raster_api_base
        encoded = quote(ref.locator, safe="")
        endpoints = [
            ApiEndpoint(
                name="visualization",
                title="Visualization",
                description="Tile-based visualization",
                base=base,
                pattern="cog/tiles/WebMercatorQuad/{z}/{x}/{y}.png?url={url}",
                example_url=f"{base}cog/tiles/WebMercatorQuad/{{z}}/{{x}}/{{y}}.png?url={encoded}",
            ),
            ApiEndpoint(
                name="statistics",
                title="Statistics",
                description="Generate statistical summaries",
                base=base,
                pattern="cog/statistics?url={url}",
                example_url=f"{base}cog/statistics?url={encoded}",
            ),
        ]

    return ServiceRecommendation(
        name="titiler-pgstac",
        title="Titiler-pgstac",
        description="Cloud Optimized GeoTIFF visualization and analysis",
        recommended=is_cog,
        use_case="Best for static raster datasets",
        endpoints=endpoints,
        docs_url=settings.raster_api_docs,
    )


def _titiler_multidim() -> ServiceRecommendation:
    return ServiceRecommendation(
        name="titiler-multidim",
        title="Titiler-multidim",
        description="For multidimensional gridded data formats",
        recommended=True,
        use_case="Visualization for NetCDF, GRIB, HDF5 with time dimensions",
    )


def _conversion() -> ServiceRecommendation:
    return ServiceRecommendation(
        name="conversion",
        title="Format Conversion",
        description="Consider converting to a supported format",
        recommended=False,
        use_case="Convert to COG or another cloud-optimized format",
    )


# -----------------------------
# Decision rules
# -----------------------------

def recommend(
    file_reference: FileReference,
    validation_result: ValidationResult,
    settings: Optional[Settings] = None,
) -> List[ServiceRecommendation]:
    """
    Ordered service candidates for a validated file.

    An empty list is a valid answer: nothing matched.
    """
    if settings is None:
        settings = get_settings()
    result = validation_result
    metadata = result.metadata

    if result.is_cmr:
        return [_titiler_cmr(result, settings)]

    services: List[ServiceRecommendation] = []

    if metadata.spatial_type == SpatialType.VECTOR:
        services.append(_tipg())

    if result.format == FileFormat.COG or (
        metadata.spatial_type == SpatialType.RASTER and not metadata.has_time_dimension
    ):
        services.append(_titiler_pgstac(file_reference, result, settings))

    if result.format in GRIDDED_FORMATS:
        if metadata.has_time_dimension:
            services.append(_titiler_multidim())
        else:
            services.append(_conversion())

    return services


def build_decision_report(
    session: ValidationSession,
    settings: Optional[Settings] = None,
) -> DecisionReport:
    """
    Everything the results page shows: file summary, steps,
    recommendations and the raw validator payload.
    """
    if session.result is None:
        raise ValueError("Session has not finished validating yet.")

    ref = session.file_reference
    result = session.result

    summary = FileSummary(
        file_name=ref.file_name,
        format=result.format,
        cloud_optimized=result.is_cloud_optimized,
        time_dimension=result.metadata.has_time_dimension,
        source="Earthdata Cloud (CMR)" if result.is_cmr else ("Upload" if ref.is_upload else "Direct URL"),
        concept_id=result.concept_id,
    )

    return DecisionReport(
        file_reference=ref,
        summary=summary,
        steps=[step.model_copy() for step in session.steps],
        result=result,
        recommendations=recommend(ref, result, settings),
        validation_details=result.validation_details,
    )
