"""Pipeline stage handlers: fan-out, per-unit provider submissions and stitching."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any

from clipsa.adapters.provider.base import GenerationProvider
from clipsa.core.config import Settings
from clipsa.domain.project_fsm import STITCHABLE_STATUSES
from clipsa.jobs.dispatcher import Dispatcher
from clipsa.jobs.names import (
    PROCESS_AUDIO,
    PROCESS_IMAGE,
    PROCESS_SCENE_VIDEO,
    START_VIDEO_GENERATION,
    STITCH_VIDEO,
)
from clipsa.jobs.registry import JobRegistry
from clipsa.repositories.base import ProjectStore
from clipsa.schemas.generation import GenerationStatus, GenerationUnit, UnitType
from clipsa.schemas.job import (
    AudioGenerationPayload,
    ImageGenerationPayload,
    SceneRequest,
    SceneVideoPayload,
    StitchVideoPayload,
    VideoGenerationPayload,
)
from clipsa.schemas.project import AudioSettings, AudioStatus, ProjectStatus, SceneStatus, VideoSettings
from clipsa.services.stitcher import Stitcher
from clipsa.services.webhooks import build_callback_url

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_MOOD = "cinematic"
DEFAULT_AUDIO_SECONDS = 10


def build_audio_prompt(scenes: list[SceneRequest], audio_settings: AudioSettings | None) -> str:
    if audio_settings is not None and audio_settings.narration:
        return audio_settings.narration
    mood = (audio_settings.mood if audio_settings is not None else None) or DEFAULT_AUDIO_MOOD
    scene_texts = ". ".join(scene.text for scene in scenes)
    return f'Soundtrack with mood "{mood}" for scenes: {scene_texts}'


def total_duration(scenes: list[SceneRequest], video_settings: VideoSettings | None) -> float:
    """Explicit total duration wins unchanged; otherwise the rounded sum of scene durations, at least 1."""
    if video_settings is not None and video_settings.total_duration:
        return video_settings.total_duration
    seconds = sum(scene.duration or 0 for scene in scenes)
    return max(1, math.floor(seconds + 0.5))


class GenerationJobs:
    """Handlers for every pipeline stage, bound to their collaborators."""

    def __init__(
        self,
        *,
        store: ProjectStore,
        provider: GenerationProvider,
        dispatcher: Dispatcher,
        stitcher: Stitcher,
        settings: Settings,
    ) -> None:
        self._store = store
        self._provider = provider
        self._dispatcher = dispatcher
        self._stitcher = stitcher
        self._settings = settings

    def register(self, registry: JobRegistry) -> JobRegistry:
        registry.register(START_VIDEO_GENERATION, self.start_video_generation)
        registry.register(PROCESS_SCENE_VIDEO, self.process_scene_video)
        registry.register(PROCESS_AUDIO, self.process_audio)
        registry.register(PROCESS_IMAGE, self.process_image)
        registry.register(STITCH_VIDEO, self.stitch_video)
        return registry

    def start_video_generation(self, payload: dict[str, Any]) -> None:
        request = VideoGenerationPayload.model_validate(payload)
        project_id = request.project_id
        logger.info("fanout.started project_id=%s scenes=%s", project_id, len(request.scenes))

        # Scene statuses reset only when leaving created.
        first_delivery = self._store.transition_project_status(
            project_id,
            ProjectStatus.PROCESSING,
            expected={ProjectStatus.CREATED},
        )
        if first_delivery:
            self._store.set_scene_statuses(project_id, SceneStatus.PENDING)
        elif not self._store.transition_project_status(
            project_id,
            ProjectStatus.PROCESSING,
            expected={ProjectStatus.PROCESSING},
        ):
            project = self._store.get_project(project_id)
            logger.warning(
                "fanout.skipped project_id=%s status=%s",
                project_id,
                project.status.value if project is not None else "missing",
            )
            return

        dispatches: list[tuple[str, dict[str, Any]]] = [
            (
                PROCESS_SCENE_VIDEO,
                SceneVideoPayload(
                    project_id=project_id,
                    scene_id=scene.id,
                    prompt=scene.text,
                    image_url=scene.image,
                ).model_dump(by_alias=True, exclude_none=True),
            )
            for scene in request.scenes
        ]
        dispatches.append(
            (
                PROCESS_AUDIO,
                AudioGenerationPayload(
                    project_id=project_id,
                    prompt=build_audio_prompt(request.scenes, request.audio_settings),
                    duration=total_duration(request.scenes, request.video_settings),
                ).model_dump(by_alias=True, exclude_none=True),
            )
        )

        # Only the dispatch calls are awaited; generations complete via webhooks.
        with ThreadPoolExecutor(max_workers=len(dispatches), thread_name_prefix="clipsa-fanout") as pool:
            futures = [pool.submit(self._dispatcher.dispatch, job_name, body) for job_name, body in dispatches]
            for future in futures:
                future.result()
        logger.info("fanout.dispatched project_id=%s jobs=%s", project_id, len(dispatches))

    def process_scene_video(self, payload: dict[str, Any]) -> None:
        request = SceneVideoPayload.model_validate(payload)
        project_id = request.project_id
        if not self._accepts_units(project_id, UnitType.VIDEO):
            return
        if self._has_live_unit(project_id, UnitType.VIDEO, scene_id=request.scene_id):
            logger.info("scene.skipped project_id=%s scene_id=%s reason=already_submitted", project_id, request.scene_id)
            return

        provider_input: dict[str, Any] = {"prompt": request.prompt}
        if request.image_url:
            provider_input["image_url"] = request.image_url

        self._store.set_scene_status(project_id, request.scene_id, SceneStatus.PROCESSING)
        self._submit(
            project_id=project_id,
            unit_type=UnitType.VIDEO,
            model=self._settings.scene_model,
            provider_input=provider_input,
            scene_id=request.scene_id,
        )

    def process_audio(self, payload: dict[str, Any]) -> None:
        request = AudioGenerationPayload.model_validate(payload)
        project_id = request.project_id
        if not self._accepts_units(project_id, UnitType.AUDIO):
            return
        if self._has_live_unit(project_id, UnitType.AUDIO):
            logger.info("audio.skipped project_id=%s reason=already_submitted", project_id)
            return

        self._store.set_audio_status(project_id, AudioStatus.PROCESSING)
        seconds = max(1, math.floor(request.duration + 0.5)) if request.duration else DEFAULT_AUDIO_SECONDS
        self._submit(
            project_id=project_id,
            unit_type=UnitType.AUDIO,
            model=self._settings.audio_model,
            provider_input={"prompt": request.prompt, "seconds_total": seconds},
        )

    def process_image(self, payload: dict[str, Any]) -> None:
        request = ImageGenerationPayload.model_validate(payload)
        if not self._accepts_units(request.project_id, UnitType.IMAGE):
            return
        provider_input: dict[str, Any] = {"prompt": request.prompt}
        if request.image_url:
            provider_input["image_url"] = request.image_url
        self._submit(
            project_id=request.project_id,
            unit_type=UnitType.IMAGE,
            model=self._settings.image_model,
            provider_input=provider_input,
        )

    def stitch_video(self, payload: dict[str, Any]) -> None:
        request = StitchVideoPayload.model_validate(payload)
        self._stitcher.stitch(request.project_id)

    def _accepts_units(self, project_id: str, unit_type: UnitType) -> bool:
        """True while the project is still in a state that can reach stitching."""
        project = self._store.get_project(project_id)
        if project is not None and project.status in STITCHABLE_STATUSES:
            return True
        logger.warning(
            "generation.skipped project_id=%s type=%s status=%s",
            project_id,
            unit_type.value,
            project.status.value if project is not None else "missing",
        )
        return False

    def _has_live_unit(self, project_id: str, unit_type: UnitType, *, scene_id: str | None = None) -> bool:
        """True when a non-failed unit already exists, i.e. this job is a redelivery."""
        return any(
            unit.status is not GenerationStatus.FAILED and (scene_id is None or unit.scene_id == scene_id)
            for unit in self._store.find_generations(project_id, unit_type)
        )

    def _submit(
        self,
        *,
        project_id: str,
        unit_type: UnitType,
        model: str,
        provider_input: dict[str, Any],
        scene_id: str | None = None,
    ) -> GenerationUnit:
        webhook_url = build_callback_url(
            self._settings.public_base_url,
            project_id=project_id,
            unit_type=unit_type,
            scene_id=scene_id,
        )
        receipt = self._provider.submit(model, input=provider_input, webhook_url=webhook_url)
        unit = self._store.insert_generation(
            GenerationUnit(
                request_id=receipt.request_id,
                project_id=project_id,
                unit_type=unit_type,
                scene_id=scene_id,
                status=GenerationStatus.PENDING,
                created_at=datetime.now(UTC),
            )
        )
        logger.info(
            "generation.submitted project_id=%s type=%s scene_id=%s model=%s request_id=%s",
            project_id,
            unit_type.value,
            scene_id,
            model,
            receipt.request_id,
        )
        return unit


__all__ = ["GenerationJobs", "build_audio_prompt", "total_duration"]
