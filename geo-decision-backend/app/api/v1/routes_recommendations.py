# app/api/v1/routes_recommendations.py

from typing import Optional

import httpx
from fastapi import APIRouter, Depends

from app.api.deps import build_pipeline, get_http_transport, open_http_client
from app.api.v1.routes_validation import parse_locator
from app.core.config import Settings, get_settings
from app.schemas.recommendation import (
    DecisionReport,
    LocatorRequest,
    RecommendationRequest,
    RecommendationResponse,
)
from app.services.recommendation_service import build_decision_report, recommend
from app.services.validation_service import ValidationSession

router = APIRouter(tags=["recommendations"])


@router.post("/recommendations", response_model=RecommendationResponse)
def recommend_services(
    req: RecommendationRequest,
    settings: Settings = Depends(get_settings),
):
    """
    Rank visualization services for an already validated file.

    A malformed validation result is rejected with 422 before this runs.
    """
    items = recommend(req.file_reference, req.validation_result, settings)
    return {"items": items, "total": len(items)}


@router.post("/decision", response_model=DecisionReport, summary="Validate and recommend")
async def decide(
    req: LocatorRequest,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    settings: Settings = Depends(get_settings),
):
    session = ValidationSession(parse_locator(req.locator))
    async with open_http_client(transport, settings) as client:
        await build_pipeline(client, settings).run(session)
    return build_decision_report(session, settings)
