# File: tests/test_validation_pipeline.py

import asyncio

import httpx
import pytest

from app.schemas.validation import FileFormat, FileReference, StepStatus, ValidationResult
from app.services.validation_service import (
    SessionBusyError,
    SessionState,
    StepEvent,
    ValidationSession,
    extract_concept_id,
)
from conftest import json_responder

CMR_URL = "https://cmr.earthdata.nasa.gov/search/concepts/C2021957295-LPCLOUD.html"

VALID_PATHS = {
    (StepStatus.PENDING, StepStatus.RUNNING, StepStatus.COMPLETED),
    (StepStatus.PENDING, StepStatus.RUNNING, StepStatus.FAILED),
}


def run(pipeline, locator, listener=None):
    session = ValidationSession(FileReference.from_locator(locator))
    result = asyncio.run(pipeline.run(session, listener))
    return session, result


def step_names(session):
    return [step.name for step in session.steps]


def test_extract_concept_id():
    assert extract_concept_id(CMR_URL) == "C2021957295-LPCLOUD"
    assert extract_concept_id("https://cmr.earthdata.nasa.gov/search/concepts/G123-POCLOUD") == "G123-POCLOUD"
    assert extract_concept_id("s3://bucket/data.tif") is None


def test_cog_end_to_end(make_pipeline):
    pipeline, transport = make_pipeline(json_responder({"COG": True, "Warnings": []}))
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.format == FileFormat.COG
    assert result.is_valid is True
    assert result.is_cloud_optimized is True
    assert result.validation_details == {"COG": True, "Warnings": []}
    assert result.is_cmr is False and result.concept_id is None

    assert step_names(session) == ["S3 Accessibility Check", "Format Detection", "COG Validation"]
    assert all(step.status == StepStatus.COMPLETED for step in session.steps)
    assert session.steps[-1].message == "Valid COG structure with proper tiling"
    assert session.state == SessionState.DONE
    assert session.result == result

    (request,) = transport.requests
    assert request.url.params["url"] == "s3://bucket/data.tif"
    assert request.url.host == "validator.test"
    assert request.url.path == "/cog/validate"


def test_cog_reported_invalid(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": False, "Errors": ["no overviews"]}))
    session, result = run(pipeline, "https://example.com/scene.tif")

    assert result.is_valid is False
    assert result.is_cloud_optimized is False
    assert result.validation_details["Errors"] == ["no overviews"]
    assert session.steps[0].name == "Accessibility Check"
    assert session.steps[-1].status == StepStatus.FAILED
    assert session.steps[-1].message == "File is not a valid Cloud Optimized GeoTIFF"


def test_validator_server_error_is_contained(make_pipeline):
    pipeline, _ = make_pipeline(lambda request: httpx.Response(503))
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.format == FileFormat.COG
    assert result.is_valid is False
    assert result.validation_details is None
    last = session.steps[-1]
    assert last.status == StepStatus.FAILED
    assert last.message == "Validation error: API returned 503: Service Unavailable"


def test_validator_timeout_is_contained(make_pipeline):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    pipeline, _ = make_pipeline(slow)
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.is_valid is False
    assert session.steps[-1].status == StepStatus.FAILED
    assert "timed out after 2s" in session.steps[-1].message


def test_validator_unreachable_is_contained(make_pipeline):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    pipeline, _ = make_pipeline(refuse)
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.is_valid is False
    assert session.steps[-1].message == "Validation error: connection refused"


def test_validator_malformed_json_is_contained(make_pipeline):
    pipeline, _ = make_pipeline(lambda request: httpx.Response(200, text="<html>oops</html>"))
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.is_valid is False
    assert "malformed JSON" in session.steps[-1].message


def test_validator_response_without_cog_field(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"status": "ok"}))
    session, result = run(pipeline, "s3://bucket/data.tif")

    assert result.is_valid is False
    assert "'COG'" in session.steps[-1].message


def test_cmr_skips_accessibility_and_validator(make_pipeline):
    pipeline, transport = make_pipeline(json_responder({"COG": True}))
    session, result = run(pipeline, CMR_URL)

    assert result.is_cmr is True
    assert result.concept_id == "C2021957295-LPCLOUD"
    assert result.format == FileFormat.UNKNOWN
    assert result.is_valid is True
    assert step_names(session) == ["CMR Concept Resolution", "Format Detection", "Unknown Validation"]
    assert session.steps[0].message == "Resolved CMR concept C2021957295-LPCLOUD"
    assert transport.requests == []


@pytest.mark.parametrize(
    "locator, fmt, message",
    [
        ("s3://bucket/temp.nc", FileFormat.NETCDF, "Valid NetCDF-4 format, cloud optimized"),
        ("s3://bucket/parcels.parquet", FileFormat.GEOPARQUET, "Valid GeoParquet with spatial metadata"),
        ("https://example.com/gfs.grib", FileFormat.GRIB, "Valid GRIB2 format detected"),
        ("https://example.com/swath.h5", FileFormat.HDF5, "Valid HDF5 structure"),
        ("https://example.com/notes.xyz", FileFormat.UNKNOWN, "Format validated"),
    ],
)
def test_non_cog_formats_use_static_check(make_pipeline, locator, fmt, message):
    pipeline, transport = make_pipeline(json_responder({"COG": True}))
    session, result = run(pipeline, locator)

    assert result.format == fmt
    assert result.is_valid is True
    assert session.steps[-1].name == f"{fmt.value} Validation"
    assert session.steps[-1].message == message
    assert transport.requests == []


def test_uploaded_cog_is_not_sent_to_validator(make_pipeline):
    pipeline, transport = make_pipeline(json_responder({"COG": False}))
    session = ValidationSession(FileReference.from_upload("local.tif"))
    result = asyncio.run(pipeline.run(session))

    assert result.format == FileFormat.COG
    assert result.is_valid is True
    assert result.is_cloud_optimized is True
    assert step_names(session) == ["Format Detection", "COG Validation"]
    assert transport.requests == []


def test_listener_sees_ordered_transitions(make_pipeline):
    pipeline, _ = make_pipeline(lambda request: httpx.Response(500))
    events = []
    session, _ = run(pipeline, "s3://bucket/data.tif", listener=events.append)

    # Every step walks a full, valid path
    per_step = {}
    for event in events:
        per_step.setdefault(event.index, []).append(event.step.status)
    assert {tuple(path) for path in per_step.values()} <= VALID_PATHS
    assert len(per_step) == len(session.steps)

    # Steps are reported as a prefix: no later step moves before an earlier one ends
    indexes = [event.index for event in events]
    assert indexes == sorted(indexes)
    assert events[-1].step.status == StepStatus.FAILED


def test_async_listener_is_awaited(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": True}))
    seen = []

    async def listener(event: StepEvent):
        await asyncio.sleep(0)
        seen.append((event.step.name, event.step.status))

    run(pipeline, "s3://bucket/data.tif", listener=listener)
    assert seen[0] == ("S3 Accessibility Check", StepStatus.PENDING)
    assert seen[-1] == ("COG Validation", StepStatus.COMPLETED)
    assert len(seen) == 9


def test_listener_events_are_snapshots(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": True}))
    events = []
    run(pipeline, "s3://bucket/data.tif", listener=events.append)
    assert events[0].step.status == StepStatus.PENDING


def test_stream_yields_events_then_result(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": True}))
    session = ValidationSession(FileReference.from_locator("s3://bucket/data.tif"))

    async def collect():
        return [item async for item in pipeline.stream(session)]

    items = asyncio.run(collect())
    assert all(isinstance(item, StepEvent) for item in items[:-1])
    assert isinstance(items[-1], ValidationResult)
    assert items[-1].is_cloud_optimized is True
    assert len(items) == 10


def test_session_cannot_be_rerun(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": True}))
    session, _ = run(pipeline, "s3://bucket/data.tif")
    with pytest.raises(SessionBusyError):
        asyncio.run(pipeline.run(session))


def test_session_busy_while_running(make_pipeline):
    pipeline, _ = make_pipeline(json_responder({"COG": True}))
    session = ValidationSession(FileReference.from_locator("s3://bucket/data.tif"))
    session.state = SessionState.RUNNING
    with pytest.raises(SessionBusyError):
        asyncio.run(pipeline.run(session))


def test_accessibility_probe_failure(make_pipeline):
    def handler(request):
        if request.method == "HEAD":
            return httpx.Response(404)
        return httpx.Response(200, json={"COG": True})

    pipeline, transport = make_pipeline(handler, probe_accessibility=True)
    session, result = run(pipeline, "https://example.com/missing.tif")

    assert session.steps[0].status == StepStatus.FAILED
    assert session.steps[0].message == "File is not accessible: HEAD returned 404: Not Found"
    # Later stages still run
    assert session.steps[-1].status == StepStatus.COMPLETED
    assert result.is_valid is False
    assert result.is_cloud_optimized is False
    assert [r.method for r in transport.requests] == ["HEAD", "GET"]


def test_accessibility_probe_success(make_pipeline):
    pipeline, transport = make_pipeline(lambda request: httpx.Response(200, json={"COG": True}),
                                        probe_accessibility=True)
    session, result = run(pipeline, "https://example.com/scene.tif")

    assert session.steps[0].message == "File is accessible (HTTP 200)"
    assert result.is_valid is True


def test_accessibility_probe_skips_s3(make_pipeline):
    pipeline, transport = make_pipeline(json_responder({"COG": True}), probe_accessibility=True)
    session, _ = run(pipeline, "s3://bucket/data.tif")

    assert session.steps[0].message == "S3 bucket is accessible"
    assert [r.method for r in transport.requests] == ["GET"]


def test_step_delay_is_applied(make_pipeline, monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("app.services.validation_service.asyncio.sleep", fake_sleep)
    pipeline, _ = make_pipeline(json_responder({"COG": True}), step_delay=0.5)
    run(pipeline, "s3://bucket/data.tif")

    assert delays and set(delays) == {0.5}
