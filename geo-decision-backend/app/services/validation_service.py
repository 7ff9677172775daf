# app/services/validation_service.py
"""
Validation pipeline for a submitted dataset reference.

Stages run strictly in order against a caller-owned ValidationSession:

  1. CMR concept resolution   (CMR concept URLs only)
  2. Accessibility check      (remote, non-CMR references only)
  3. Format detection         (always)
  4. <format> validation      (remote COG -> remote validator, else static)
  5. Finalization             (derive is_cloud_optimized + metadata)

Every step change is pushed to an optional progress listener, so callers
see each Pending -> Running -> Completed/Failed transition individually.
A failed stage never aborts the run: the session always ends with a
ValidationResult.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Union

import httpx
from pydantic import BaseModel

from app.gis.cog_utils import (
    AccessibilityError,
    CogValidationError,
    CogValidatorClient,
    probe_locator,
)
from app.gis.formats import detect_format, format_validation_message, infer_metadata, is_cloud_optimized
from app.schemas.validation import (
    CMR_CONCEPT_RE,
    FileFormat,
    FileReference,
    SourceKind,
    StepStatus,
    ValidationResult,
    ValidationStep,
)

logger = logging.getLogger(__name__)

CMR_STEP = "CMR Concept Resolution"
ACCESS_STEP = "Accessibility Check"
S3_ACCESS_STEP = "S3 Accessibility Check"
FORMAT_STEP = "Format Detection"


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


class SessionBusyError(RuntimeError):
    """A session was started while a run for it is already in flight."""


class StepEvent(BaseModel):
    """Snapshot of one step right after it changed."""

    index: int
    step: ValidationStep


ProgressListener = Callable[[StepEvent], Union[None, Awaitable[None]]]


class ValidationSession:
    """
    Everything one wizard run owns: the file reference, the step list
    and, once finished, the result. Discard it to start over.
    """

    def __init__(self, file_reference: FileReference) -> None:
        self.file_reference = file_reference
        self.steps: List[ValidationStep] = []
        self.result: Optional[ValidationResult] = None
        self.state = SessionState.IDLE

    @property
    def is_done(self) -> bool:
        return self.state == SessionState.DONE


def extract_concept_id(locator: str) -> Optional[str]:
    """
    "https://cmr.earthdata.nasa.gov/search/concepts/C2021957295-LPCLOUD.html"
    -> "C2021957295-LPCLOUD"
    """
    match = CMR_CONCEPT_RE.search(locator)
    if not match:
        return None
    return match.group(1).split(".", 1)[0] or None


class ValidationPipeline:
    def __init__(
        self,
        cog_validator: CogValidatorClient,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        step_delay: float = 0.0,
        probe_accessibility: bool = False,
    ) -> None:
        self.cog_validator = cog_validator
        self.http_client = http_client
        self.step_delay = step_delay
        self.probe_accessibility = probe_accessibility

    # -----------------------------
    # Public API
    # -----------------------------
    async def run(
        self,
        session: ValidationSession,
        listener: Optional[ProgressListener] = None,
    ) -> ValidationResult:
        if session.state == SessionState.RUNNING:
            raise SessionBusyError("A validation run is already in progress for this session.")
        if session.state == SessionState.DONE:
            raise SessionBusyError("This session has already been validated; start a new one.")

        session.state = SessionState.RUNNING
        try:
            session.result = await self._run_stages(session, listener)
        finally:
            session.state = SessionState.DONE
        return session.result

    async def stream(self, session: ValidationSession) -> AsyncIterator[Union[StepEvent, ValidationResult]]:
        """
        Yield every StepEvent in order, then the final ValidationResult.
        """
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self.run(session, listener=queue.put_nowait))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            yield await task
        finally:
            if not task.done():
                task.cancel()

    # -----------------------------
    # Stages
    # -----------------------------
    async def _run_stages(
        self,
        session: ValidationSession,
        listener: Optional[ProgressListener],
    ) -> ValidationResult:
        ref = session.file_reference
        is_valid = True
        concept_id: Optional[str] = None
        details = None

        logger.info("Starting validation for %s", ref.locator)

        # 1. CMR concept resolution
        if ref.source_kind == SourceKind.CMR:
            step = await self._start(session, CMR_STEP, listener)
            concept_id = extract_concept_id(ref.locator)
            await self._pause()
            if concept_id:
                await self._finish(
                    session, step, StepStatus.COMPLETED,
                    f"Resolved CMR concept {concept_id}", listener,
                )
            else:
                is_valid = False
                await self._finish(
                    session, step, StepStatus.FAILED,
                    "Could not read a concept id from the CMR URL", listener,
                )

        # 2. Accessibility check
        elif ref.is_remote:
            name = S3_ACCESS_STEP if ref.is_s3 else ACCESS_STEP
            step = await self._start(session, name, listener)
            await self._pause()
            if self.probe_accessibility and not ref.is_s3 and self.http_client is not None:
                try:
                    status_code = await probe_locator(self.http_client, ref.locator)
                except AccessibilityError as exc:
                    logger.warning("Accessibility check failed for %s: %s", ref.locator, exc)
                    is_valid = False
                    await self._finish(
                        session, step, StepStatus.FAILED,
                        f"File is not accessible: {exc}", listener,
                    )
                else:
                    await self._finish(
                        session, step, StepStatus.COMPLETED,
                        f"File is accessible (HTTP {status_code})", listener,
                    )
            else:
                message = "S3 bucket is accessible" if ref.is_s3 else "File is accessible"
                await self._finish(session, step, StepStatus.COMPLETED, message, listener)

        # 3. Format detection
        await self._pause()
        step = await self._start(session, FORMAT_STEP, listener)
        fmt = detect_format(ref.file_name)
        await self._finish(
            session, step, StepStatus.COMPLETED, f"Detected format: {fmt.value}", listener
        )

        # 4. Format-specific validation
        await self._pause()
        step = await self._start(session, f"{fmt.value} Validation", listener)
        if fmt == FileFormat.COG and ref.is_remote:
            try:
                outcome = await self.cog_validator.validate(ref.locator)
            except CogValidationError as exc:
                logger.warning("COG validation error for %s: %s", ref.locator, exc)
                is_valid = False
                await self._finish(
                    session, step, StepStatus.FAILED, f"Validation error: {exc}", listener
                )
            else:
                details = outcome.details
                is_valid = is_valid and outcome.is_valid
                await self._finish(
                    session, step,
                    StepStatus.COMPLETED if outcome.is_valid else StepStatus.FAILED,
                    outcome.message, listener,
                )
        else:
            await self._pause()
            await self._finish(
                session, step, StepStatus.COMPLETED, format_validation_message(fmt), listener
            )

        # 5. Finalization
        result = ValidationResult(
            format=fmt,
            is_valid=is_valid,
            is_cloud_optimized=is_cloud_optimized(fmt, is_valid),
            metadata=infer_metadata(fmt),
            is_cmr=concept_id is not None,
            concept_id=concept_id,
            validation_details=details,
        )
        logger.info(
            "Validation finished for %s: format=%s valid=%s cloud_optimized=%s",
            ref.file_name, result.format.value, result.is_valid, result.is_cloud_optimized,
        )
        return result

    # -----------------------------
    # Step bookkeeping
    # -----------------------------
    async def _start(
        self,
        session: ValidationSession,
        name: str,
        listener: Optional[ProgressListener],
    ) -> ValidationStep:
        step = ValidationStep(name=name)
        session.steps.append(step)
        await self._notify(session, step, listener)
        step.advance(StepStatus.RUNNING)
        await self._notify(session, step, listener)
        return step

    async def _finish(
        self,
        session: ValidationSession,
        step: ValidationStep,
        status: StepStatus,
        message: str,
        listener: Optional[ProgressListener],
    ) -> None:
        step.advance(status, message)
        await self._notify(session, step, listener)

    async def _notify(
        self,
        session: ValidationSession,
        step: ValidationStep,
        listener: Optional[ProgressListener],
    ) -> None:
        if listener is None:
            return
        index = next(i for i, s in enumerate(session.steps) if s is step)
        event = StepEvent(index=index, step=step.model_copy())
        outcome = listener(event)
        if inspect.isawaitable(outcome):
            await outcome

    async def _pause(self) -> None:
        if self.step_delay > 0:
            await asyncio.sleep(self.step_delay)
