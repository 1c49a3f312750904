"""Provider webhook ingestion and fan-in completion detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from clipsa.domain.project_fsm import STITCHABLE_STATUSES
from clipsa.errors import ApiError, MissingCorrelationId, UnknownUnitType
from clipsa.jobs.dispatcher import Dispatcher
from clipsa.jobs.names import STITCH_VIDEO
from clipsa.repositories.base import ProjectStore
from clipsa.schemas.generation import GenerationStatus, UnitType
from clipsa.schemas.job import DispatchReceipt, StitchVideoPayload
from clipsa.schemas.project import AudioStatus, ProjectStatus, SceneStatus
from clipsa.schemas.webhook import ProviderWebhookRequest
from clipsa.services.output_resolution import resolve_output_url

logger = logging.getLogger(__name__)

WEBHOOK_PROVIDER = "fal"
SUPPORTED_WEBHOOK_PROVIDERS = frozenset({WEBHOOK_PROVIDER})

_SUCCESS_STATUSES = frozenset({"OK", "COMPLETED"})
_FAILURE_STATUSES = frozenset({"ERROR"})
# Units whose output feeds the stitcher must resolve to a single URL.
_STITCHED_UNIT_TYPES = frozenset({UnitType.VIDEO, UnitType.AUDIO})


def build_callback_url(
    base_url: str,
    *,
    project_id: str,
    unit_type: UnitType,
    scene_id: str | None = None,
    provider: str = WEBHOOK_PROVIDER,
) -> str:
    params = {"projectId": project_id}
    if scene_id:
        params["sceneId"] = scene_id
    params["type"] = unit_type.value
    return f"{base_url.rstrip('/')}/api/webhooks/{provider}?{urlencode(params)}"


def normalize_status(raw_status: str | None) -> str:
    """Map provider status vocabulary onto unit statuses; unknown values pass through."""
    if raw_status in _SUCCESS_STATUSES:
        return GenerationStatus.SUCCEEDED.value
    if raw_status in _FAILURE_STATUSES:
        return GenerationStatus.FAILED.value
    return raw_status or ""


def parse_unit_type(raw_unit_type: str | None) -> UnitType:
    try:
        return UnitType(raw_unit_type)
    except ValueError as exc:
        raise UnknownUnitType(raw_unit_type) from exc


class AggregationOutcome(str, Enum):
    IGNORED = "ignored"
    UNIT_MISSING = "unit_missing"
    PENDING = "pending"
    FAILED = "failed"
    STITCH_DISPATCHED = "stitch_dispatched"
    STITCH_SKIPPED = "stitch_skipped"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass(slots=True, frozen=True)
class UnitNotification:
    """One provider completion message, keyed by (project_id, unit_type)."""

    project_id: str | None
    unit_type: str | None
    request_id: str | None
    status: str | None
    scene_id: str | None = None
    output: Any = None
    error: Any = None


@dataclass(slots=True)
class AggregationResult:
    outcome: AggregationOutcome
    unit_applied: bool = False
    dispatch: DispatchReceipt | None = None


@dataclass(slots=True, frozen=True)
class _ProjectProgress:
    total_scenes: int
    succeeded_scenes: int
    failed_scenes: int
    audio_succeeded: bool
    status: ProjectStatus


class CompletionAggregator:
    """Records unit completions and decides when a project's fan-out is complete.

    ``handle`` is safe to call repeatedly with the same notification: terminal
    units are immutable, the failure transition is conditional, and stitching is
    claimed with a single compare-and-set on the project status so concurrent
    "last unit" deliveries dispatch at most one stitch job.
    """

    def __init__(self, *, store: ProjectStore, dispatcher: Dispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def handle(self, notification: UnitNotification) -> AggregationResult:
        project_id = notification.project_id
        if not project_id:
            raise MissingCorrelationId("Missing projectId")
        unit_type = parse_unit_type(notification.unit_type)

        status = normalize_status(notification.status)
        if status not in (GenerationStatus.SUCCEEDED.value, GenerationStatus.FAILED.value):
            logger.info(
                "webhook.ignored project_id=%s type=%s request_id=%s status=%s",
                project_id,
                unit_type.value,
                notification.request_id,
                status,
            )
            return AggregationResult(outcome=AggregationOutcome.IGNORED)

        unit_status = GenerationStatus(status)
        output = notification.output if unit_status is GenerationStatus.SUCCEEDED else None
        error = notification.error
        if (
            unit_status is GenerationStatus.SUCCEEDED
            and unit_type in _STITCHED_UNIT_TYPES
            and resolve_output_url(output) is None
        ):
            logger.warning(
                "webhook.unresolved_output project_id=%s type=%s request_id=%s",
                project_id,
                unit_type.value,
                notification.request_id,
            )
            unit_status = GenerationStatus.FAILED
            error = {"code": "UNRESOLVED_ASSET", "message": "Provider output did not contain an asset URL"}

        result = self._store.complete_generation(
            unit_type=unit_type,
            request_id=notification.request_id or "",
            status=unit_status,
            output=output,
            error=error,
        )
        if not result.matched or result.unit is None:
            logger.warning(
                "webhook.unit_missing project_id=%s type=%s request_id=%s",
                project_id,
                unit_type.value,
                notification.request_id,
            )
            return AggregationResult(outcome=AggregationOutcome.UNIT_MISSING)
        if not result.applied:
            logger.info(
                "webhook.replayed project_id=%s type=%s request_id=%s recorded_status=%s",
                project_id,
                unit_type.value,
                notification.request_id,
                result.unit.status.value,
            )

        # Mirror the recorded status, not the incoming one, so replays never flip UI state.
        recorded_status = result.unit.status
        scene_id = notification.scene_id or result.unit.scene_id
        if unit_type is UnitType.VIDEO and scene_id:
            self._store.set_scene_status(project_id, scene_id, SceneStatus(recorded_status.value))
        if unit_type is UnitType.AUDIO:
            self._store.set_audio_status(project_id, AudioStatus(recorded_status.value))

        aggregation = self._advance_project(project_id)
        aggregation.unit_applied = result.applied
        return aggregation

    def _read_progress(self, project_id: str) -> _ProjectProgress | None:
        project = self._store.get_project(project_id)
        if project is None:
            logger.warning("webhook.project_missing project_id=%s", project_id)
            return None
        return _ProjectProgress(
            total_scenes=len(project.scenes),
            succeeded_scenes=self._store.count_scene_generations(project_id, GenerationStatus.SUCCEEDED),
            failed_scenes=self._store.count_scene_generations(project_id, GenerationStatus.FAILED),
            audio_succeeded=self._store.count_generations(project_id, UnitType.AUDIO, GenerationStatus.SUCCEEDED) > 0,
            status=project.status,
        )

    def _advance_project(self, project_id: str) -> AggregationResult:
        try:
            progress = self._read_progress(project_id)
        except Exception:
            # An unreadable aggregate is never evidence of completion.
            logger.exception("webhook.aggregate_read_failed project_id=%s", project_id)
            return AggregationResult(outcome=AggregationOutcome.PENDING)
        if progress is None:
            return AggregationResult(outcome=AggregationOutcome.PENDING)

        if progress.failed_scenes > 0:
            failed_now = self._store.transition_project_status(
                project_id,
                ProjectStatus.FAILED,
                expected=STITCHABLE_STATUSES,
                error=f"{progress.failed_scenes} scene generation(s) failed",
            )
            if failed_now:
                logger.info(
                    "webhook.project_failed project_id=%s failed_scenes=%s total_scenes=%s",
                    project_id,
                    progress.failed_scenes,
                    progress.total_scenes,
                )
            return AggregationResult(outcome=AggregationOutcome.FAILED)

        all_ready = (
            progress.total_scenes > 0
            and progress.succeeded_scenes == progress.total_scenes
            and progress.audio_succeeded
        )
        if not all_ready:
            return AggregationResult(outcome=AggregationOutcome.PENDING)
        if progress.status in (ProjectStatus.STITCHING, ProjectStatus.COMPLETED):
            return AggregationResult(outcome=AggregationOutcome.STITCH_SKIPPED)

        claimed = self._store.transition_project_status(
            project_id,
            ProjectStatus.STITCHING,
            expected=STITCHABLE_STATUSES,
        )
        if not claimed:
            logger.info("webhook.stitch_not_claimed project_id=%s", project_id)
            return AggregationResult(outcome=AggregationOutcome.STITCH_SKIPPED)

        try:
            receipt = self._dispatcher.dispatch(
                STITCH_VIDEO,
                StitchVideoPayload(project_id=project_id).model_dump(by_alias=True),
            )
        except Exception:
            logger.exception("webhook.stitch_dispatch_failed project_id=%s", project_id)
            return AggregationResult(outcome=AggregationOutcome.DISPATCH_FAILED)

        logger.info(
            "webhook.stitch_dispatched project_id=%s mode=%s message_id=%s",
            project_id,
            receipt.mode,
            receipt.message_id,
        )
        return AggregationResult(outcome=AggregationOutcome.STITCH_DISPATCHED, dispatch=receipt)


class ProviderWebhookService:
    """HTTP-facing wrapper: validates the callback and always acknowledges bookkeeping."""

    def __init__(self, aggregator: CompletionAggregator) -> None:
        self._aggregator = aggregator

    def ingest(
        self,
        *,
        provider: str,
        project_id: str | None,
        unit_type: str | None,
        scene_id: str | None,
        body: ProviderWebhookRequest,
    ) -> AggregationResult | None:
        if provider not in SUPPORTED_WEBHOOK_PROVIDERS:
            raise ApiError(status_code=404, code="UNKNOWN_PROVIDER", message="Unknown provider")

        logger.info(
            "webhook.received provider=%s project_id=%s type=%s scene_id=%s request_id=%s status=%s",
            provider,
            project_id,
            unit_type,
            scene_id,
            body.request_id,
            body.status,
        )
        notification = UnitNotification(
            project_id=project_id,
            unit_type=unit_type,
            scene_id=scene_id,
            request_id=body.request_id,
            status=body.status,
            output=body.payload,
            error=body.error,
        )
        try:
            return self._aggregator.handle(notification)
        except MissingCorrelationId as exc:
            logger.warning("webhook.rejected provider=%s code=%s", provider, exc.code)
            raise ApiError(status_code=400, code=exc.code, message=str(exc)) from exc
        except UnknownUnitType as exc:
            logger.warning("webhook.rejected provider=%s code=%s type=%s", provider, exc.code, unit_type)
            raise ApiError(
                status_code=400,
                code=exc.code,
                message="Unknown type",
                details={"type": unit_type},
            ) from exc
        except Exception:
            logger.exception(
                "webhook.bookkeeping_failed provider=%s project_id=%s request_id=%s",
                provider,
                project_id,
                body.request_id,
            )
            return None


__all__ = [
    "AggregationOutcome",
    "AggregationResult",
    "CompletionAggregator",
    "ProviderWebhookService",
    "SUPPORTED_WEBHOOK_PROVIDERS",
    "UnitNotification",
    "WEBHOOK_PROVIDER",
    "build_callback_url",
    "normalize_status",
    "parse_unit_type",
]
