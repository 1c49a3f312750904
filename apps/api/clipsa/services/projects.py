"""Project service layer."""

import logging

from clipsa.errors import ApiError
from clipsa.jobs.dispatcher import Dispatcher
from clipsa.jobs.names import PROCESS_IMAGE, START_VIDEO_GENERATION
from clipsa.repositories.base import ProjectRecord, ProjectStore
from clipsa.schemas.generation import GenerationStatus, UnitType
from clipsa.schemas.job import (
    GenerationStarted,
    ImageGenerationPayload,
    SceneRequest,
    VideoGenerationPayload,
)
from clipsa.schemas.project import (
    AudioProgress,
    CreateImageRequest,
    CreateProjectRequest,
    Project,
    ProjectStatus,
    SceneProgress,
)
from clipsa.services.output_resolution import resolve_output_url

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, store: ProjectStore, dispatcher: Dispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def create_project(self, payload: CreateProjectRequest) -> Project:
        scene_ids = [scene.id for scene in payload.scenes]
        if len(set(scene_ids)) != len(scene_ids):
            raise ApiError(status_code=400, code="DUPLICATE_SCENE_ID", message="Scene ids must be unique")

        record = self._store.create_project(
            name=payload.name,
            scenes=payload.scenes,
            audio_settings=payload.audio_settings,
            video_settings=payload.video_settings,
        )
        return self._to_project(record)

    def get_project(self, project_id: str) -> Project:
        record = self._store.get_project(project_id)
        if record is None:
            raise ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")
        return self._to_project(record)

    def start_generation(self, project_id: str) -> GenerationStarted:
        record = self._store.get_project(project_id)
        if record is None or record.kind != "video":
            raise ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")
        if record.status is not ProjectStatus.CREATED:
            raise ApiError(
                status_code=409,
                code="GENERATION_ALREADY_STARTED",
                message="Generation has already been started for this project",
                details={"current_status": record.status},
            )

        payload = VideoGenerationPayload(
            project_id=record.id,
            scenes=[
                SceneRequest(id=scene.id, text=scene.text, image=scene.image, duration=scene.duration)
                for scene in record.scenes
            ],
            audio_settings=record.audio_settings,
            video_settings=record.video_settings,
        )
        receipt = self._dispatcher.dispatch(
            START_VIDEO_GENERATION,
            payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        logger.info("project.generation_started project_id=%s mode=%s", record.id, receipt.mode)
        return GenerationStarted(project_id=record.id, dispatch=receipt)

    def create_image(self, payload: CreateImageRequest) -> GenerationStarted:
        prompt = payload.prompt.strip()
        if not prompt:
            raise ApiError(status_code=400, code="VALIDATION_ERROR", message="Prompt is required")

        record = self._store.create_project(
            name=prompt[:80],
            scenes=[],
            kind="image",
            prompt=prompt,
            source_image_url=payload.source_image_url,
        )
        receipt = self._dispatcher.dispatch(
            PROCESS_IMAGE,
            ImageGenerationPayload(
                project_id=record.id,
                prompt=prompt,
                image_url=payload.source_image_url,
            ).model_dump(by_alias=True, exclude_none=True),
        )
        return GenerationStarted(project_id=record.id, dispatch=receipt)

    def _to_project(self, record: ProjectRecord) -> Project:
        """Join the project with its generation units: scene clip URLs and the audio track."""
        clip_urls: dict[str, str | None] = {}
        for unit in self._store.find_generations(record.id, UnitType.VIDEO, GenerationStatus.SUCCEEDED):
            if unit.scene_id is not None:
                clip_urls[unit.scene_id] = resolve_output_url(unit.output)

        audio = None
        audio_units = self._store.find_generations(record.id, UnitType.AUDIO)
        if audio_units:
            latest = audio_units[-1]
            audio = AudioProgress(status=latest.status, output_url=resolve_output_url(latest.output))

        return Project(
            id=record.id,
            name=record.name,
            kind=record.kind,
            status=record.status,
            audio_status=record.audio_status,
            scenes=[
                SceneProgress(**scene.model_dump(), output_url=clip_urls.get(scene.id)) for scene in record.scenes
            ],
            audio=audio,
            assets=record.assets,
            error=record.error,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
