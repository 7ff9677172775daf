# app/api/v1/routes_validation.py
"""
Validation endpoints (wizard step 2).

Each request gets its own ValidationSession; nothing is kept between
requests.
"""

import json
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from app.api.deps import build_pipeline, get_http_transport, open_http_client
from app.core.config import Settings, get_settings
from app.schemas.recommendation import LocatorRequest, ValidationRunResponse
from app.schemas.validation import FileReference, InvalidFileReference
from app.services.validation_service import StepEvent, ValidationSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["validation"])


def parse_locator(locator: str) -> FileReference:
    try:
        return FileReference.from_locator(locator)
    except InvalidFileReference as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def run_session(
    session: ValidationSession,
    transport: Optional[httpx.AsyncBaseTransport],
    settings: Settings,
) -> ValidationRunResponse:
    async with open_http_client(transport, settings) as client:
        result = await build_pipeline(client, settings).run(session)
    return ValidationRunResponse(
        file_reference=session.file_reference,
        steps=session.steps,
        result=result,
    )


@router.post("", response_model=ValidationRunResponse, summary="Validate a dataset URL")
async def validate_file(
    req: LocatorRequest,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    settings: Settings = Depends(get_settings),
):
    session = ValidationSession(parse_locator(req.locator))
    return await run_session(session, transport, settings)


@router.post("/stream", summary="Validate a dataset URL, streaming step progress")
async def validate_file_stream(
    req: LocatorRequest,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    settings: Settings = Depends(get_settings),
):
    """
    Newline-delimited JSON, one line per step transition:

        {"event": "step", "index": 0, "step": {"name": ..., "status": "running", ...}}
        ...
        {"event": "result", "result": {...}}
    """
    session = ValidationSession(parse_locator(req.locator))

    async def event_lines():
        async with open_http_client(transport, settings) as client:
            async for item in build_pipeline(client, settings).stream(session):
                if isinstance(item, StepEvent):
                    payload = {"event": "step", **item.model_dump(mode="json")}
                else:
                    payload = {"event": "result", "result": item.model_dump(mode="json")}
                yield json.dumps(payload) + "\n"

    return StreamingResponse(event_lines(), media_type="application/x-ndjson")


@router.post("/upload", response_model=ValidationRunResponse, summary="Validate an uploaded file")
async def validate_upload(
    file: UploadFile = File(...),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    settings: Settings = Depends(get_settings),
):
    """
    Only the file name is inspected; the content is neither parsed nor stored.
    """
    try:
        ref = FileReference.from_upload(file.filename)
    except InvalidFileReference as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        await file.close()

    logger.info("Validating uploaded file %s", ref.file_name)
    return await run_session(ValidationSession(ref), transport, settings)
