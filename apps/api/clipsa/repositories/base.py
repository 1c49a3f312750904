"""Persistence interfaces consumed by the generation pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from clipsa.schemas.generation import GenerationStatus, GenerationUnit, UnitType
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
class ProjectRecord:
    id: str
    name: str
    status: ProjectStatus
    created_at: datetime
    kind: str = "video"
    scenes: list[Scene] = field(default_factory=list)
    audio_status: AudioStatus | None = None
    audio_settings: AudioSettings | None = None
    video_settings: VideoSettings | None = None
    assets: ProjectAssets | None = None
    error: str | None = None
    prompt: str | None = None
    source_image_url: str | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class CompletionResult:
    """Outcome of recording a terminal status on a generation unit."""

    matched: bool
    applied: bool
    unit: GenerationUnit | None = None


class ProjectStore(ABC):
    """Document store holding projects and generation units.

    Every method is a single atomic operation against the backing store.
    Callers never hold a lock across calls.
    """

    @abstractmethod
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
    ) -> ProjectRecord: ...

    @abstractmethod
    def get_project(self, project_id: str) -> ProjectRecord | None: ...

    @abstractmethod
    def transition_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        *,
        expected: Iterable[ProjectStatus] | None = None,
        error: str | None = None,
        assets: ProjectAssets | None = None,
    ) -> bool:
        """Conditionally set the project status; return whether the write matched."""

    @abstractmethod
    def set_scene_status(self, project_id: str, scene_id: str, status: SceneStatus) -> bool: ...

    @abstractmethod
    def set_scene_statuses(self, project_id: str, status: SceneStatus) -> int: ...

    @abstractmethod
    def set_audio_status(self, project_id: str, status: AudioStatus) -> bool: ...

    @abstractmethod
    def insert_generation(self, unit: GenerationUnit) -> GenerationUnit: ...

    @abstractmethod
    def complete_generation(
        self,
        *,
        unit_type: UnitType,
        request_id: str,
        status: GenerationStatus,
        output: Any = None,
        error: Any = None,
    ) -> CompletionResult:
        """Move a pending unit to a terminal status; terminal units are left untouched."""

    @abstractmethod
    def find_generations(
        self,
        project_id: str,
        unit_type: UnitType,
        status: GenerationStatus | None = None,
    ) -> list[GenerationUnit]: ...

    @abstractmethod
    def count_generations(self, project_id: str, unit_type: UnitType, status: GenerationStatus) -> int: ...

    @abstractmethod
    def count_scene_generations(self, project_id: str, status: GenerationStatus) -> int:
        """Count distinct scene ids that have a video unit in the given status."""

    def find_generation(
        self,
        project_id: str,
        unit_type: UnitType,
        status: GenerationStatus,
    ) -> GenerationUnit | None:
        units = self.find_generations(project_id, unit_type, status)
        return units[-1] if units else None


__all__ = ["CompletionResult", "ProjectRecord", "ProjectStore"]
