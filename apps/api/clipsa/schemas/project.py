"""Project API schemas."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clipsa.schemas.generation import GenerationStatus


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectStatus(str, Enum):
    CREATED = "created"
    PROCESSING = "processing"
    STITCHING = "stitching"
    COMPLETED = "completed"
    FAILED = "failed"


class AudioStatus(str, Enum):
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SceneStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Scene(CamelModel):
    id: str = Field(min_length=1)
    text: str = ""
    duration: float = 0
    motion: Literal["static", "pan-left", "pan-right", "zoom-in", "zoom-out"] = "static"
    transition: Literal["cut", "fade", "dissolve"] = "cut"
    image: str | None = None
    status: SceneStatus = SceneStatus.PENDING


class SceneProgress(Scene):
    """Scene as reported to clients, with its generated clip once available."""

    output_url: str | None = None


class AudioProgress(CamelModel):
    status: GenerationStatus
    output_url: str | None = None


class AudioSettings(CamelModel):
    mood: str | None = None
    narration: str | None = None
    voice_style: str | None = None


class VideoSettings(CamelModel):
    aspect_ratio: str | None = None
    total_duration: float | None = None


class ProjectAssets(CamelModel):
    final_asset_id: str
    final_asset_url: str


class Project(CamelModel):
    id: str
    name: str
    kind: Literal["video", "image"] = "video"
    status: ProjectStatus
    audio_status: AudioStatus | None = None
    scenes: list[SceneProgress] = Field(default_factory=list)
    audio: AudioProgress | None = None
    assets: ProjectAssets | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class CreateProjectRequest(CamelModel):
    name: str = "Untitled video"
    scenes: list[Scene] = Field(min_length=1)
    audio_settings: AudioSettings | None = None
    video_settings: VideoSettings | None = None


class CreateImageRequest(CamelModel):
    prompt: str = Field(min_length=1)
    source_image_url: str | None = None
