"""In-memory repositories used by the API scaffold and tests."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import RLock
from typing import Any
from uuid import uuid4

from clipsa.domain.project_fsm import is_transition_allowed
from clipsa.repositories.base import CompletionResult, ProjectRecord, ProjectStore
from clipsa.schemas.generation import (
    TERMINAL_GENERATION_STATUSES,
    GenerationStatus,
    GenerationUnit,
    UnitType,
)
from clipsa.schemas.project import (
    AudioSettings,
    AudioStatus,
    ProjectAssets,
    ProjectStatus,
    Scene,
    SceneStatus,
    VideoSettings,
)


@dataclass(slots=True)
class InMemoryStore(ProjectStore):
    """Simple, deterministic persistence layer for scaffolding and tests."""

    projects: dict[str, ProjectRecord] = field(default_factory=dict)
    generations: dict[tuple[UnitType, str], GenerationUnit] = field(default_factory=dict)
    project_write_count: int = 0
    generation_write_count: int = 0
    aggregate_read_failure_message: str | None = None
    _lock: RLock = field(default_factory=RLock, repr=False)

    def create_project(
        self,
        *,
        name: str,
        scenes: list[Scene],
        kind: str = "video",
        audio_settings: AudioSettings | None = None,
        video_settings: VideoSettings | None = None,
        prompt: str | None = None,
        source_image_url: str | None = None,
    ) -> ProjectRecord:
        now = datetime.now(UTC)
        project = ProjectRecord(
            id=uuid4().hex[:24],
            name=name,
            kind=kind,
            status=ProjectStatus.CREATED,
            created_at=now,
            updated_at=now,
            scenes=[scene.model_copy(deep=True) for scene in scenes],
            audio_settings=audio_settings,
            video_settings=video_settings,
            prompt=prompt,
            source_image_url=source_image_url,
        )
        with self._lock:
            self.projects[project.id] = project
            self.project_write_count += 1
            return copy.deepcopy(project)

    def get_project(self, project_id: str) -> ProjectRecord | None:
        with self._lock:
            project = self.projects.get(project_id)
            return copy.deepcopy(project) if project is not None else None

    def transition_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        *,
        expected: Iterable[ProjectStatus] | None = None,
        error: str | None = None,
        assets: ProjectAssets | None = None,
    ) -> bool:
        expected_statuses = frozenset(expected) if expected is not None else None
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                return False
            if expected_statuses is not None and project.status not in expected_statuses:
                return False
            if not is_transition_allowed(project.status, new_status):
                return False

            project.status = new_status
            if error is not None:
                project.error = error
            if assets is not None:
                project.assets = assets.model_copy(deep=True)
            project.updated_at = datetime.now(UTC)
            self.project_write_count += 1
            return True

    def set_scene_status(self, project_id: str, scene_id: str, status: SceneStatus) -> bool:
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                return False
            for scene in project.scenes:
                if scene.id == scene_id:
                    scene.status = status
                    project.updated_at = datetime.now(UTC)
                    self.project_write_count += 1
                    return True
            return False

    def set_scene_statuses(self, project_id: str, status: SceneStatus) -> int:
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                return 0
            for scene in project.scenes:
                scene.status = status
            project.updated_at = datetime.now(UTC)
            self.project_write_count += 1
            return len(project.scenes)

    def set_audio_status(self, project_id: str, status: AudioStatus) -> bool:
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                return False
            project.audio_status = status
            project.updated_at = datetime.now(UTC)
            self.project_write_count += 1
            return True

    def insert_generation(self, unit: GenerationUnit) -> GenerationUnit:
        stored = unit.model_copy(deep=True)
        with self._lock:
            self.generations[(stored.unit_type, stored.request_id)] = stored
            self.generation_write_count += 1
        return stored.model_copy(deep=True)

    def complete_generation(
        self,
        *,
        unit_type: UnitType,
        request_id: str,
        status: GenerationStatus,
        output: Any = None,
        error: Any = None,
    ) -> CompletionResult:
        with self._lock:
            unit = self.generations.get((unit_type, request_id))
            if unit is None:
                return CompletionResult(matched=False, applied=False)
            # Terminal units are immutable; replays leave status and output as first recorded.
            if unit.status in TERMINAL_GENERATION_STATUSES:
                return CompletionResult(matched=True, applied=False, unit=unit.model_copy(deep=True))

            unit.status = status
            if output is not None:
                unit.output = copy.deepcopy(output)
            if error is not None:
                unit.error = copy.deepcopy(error)
            unit.updated_at = datetime.now(UTC)
            self.generation_write_count += 1
            return CompletionResult(matched=True, applied=True, unit=unit.model_copy(deep=True))

    def find_generations(
        self,
        project_id: str,
        unit_type: UnitType,
        status: GenerationStatus | None = None,
    ) -> list[GenerationUnit]:
        with self._lock:
            units = [
                unit.model_copy(deep=True)
                for unit in self.generations.values()
                if unit.project_id == project_id
                and unit.unit_type is unit_type
                and (status is None or unit.status is status)
            ]
        units.sort(key=lambda unit: unit.created_at)
        return units

    def count_generations(self, project_id: str, unit_type: UnitType, status: GenerationStatus) -> int:
        with self._lock:
            self._maybe_raise_aggregate_read_failure()
            return sum(
                1
                for unit in self.generations.values()
                if unit.project_id == project_id and unit.unit_type is unit_type and unit.status is status
            )

    def count_scene_generations(self, project_id: str, status: GenerationStatus) -> int:
        with self._lock:
            self._maybe_raise_aggregate_read_failure()
            return len(
                {
                    unit.scene_id
                    for unit in self.generations.values()
                    if unit.project_id == project_id
                    and unit.unit_type is UnitType.VIDEO
                    and unit.status is status
                    and unit.scene_id is not None
                }
            )

    def _maybe_raise_aggregate_read_failure(self) -> None:
        if self.aggregate_read_failure_message is None:
            return
        message = self.aggregate_read_failure_message
        self.aggregate_read_failure_message = None
        raise RuntimeError(message)


__all__ = ["InMemoryStore"]
