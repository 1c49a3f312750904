"""Job dispatch schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from clipsa.schemas.project import AudioSettings, CamelModel, VideoSettings


class JobEnvelope(CamelModel):
    """Body the relay delivers to the job processing endpoint."""

    job_name: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class DispatchReceipt(CamelModel):
    message_id: str
    mode: Literal["local", "relay"]


class JobAccepted(BaseModel):
    success: bool = True


class SceneRequest(CamelModel):
    id: str = Field(min_length=1)
    text: str = ""
    image: str | None = None
    duration: float | None = None


class VideoGenerationPayload(CamelModel):
    project_id: str
    scenes: list[SceneRequest]
    audio_settings: AudioSettings | None = None
    video_settings: VideoSettings | None = None


class SceneVideoPayload(CamelModel):
    project_id: str
    scene_id: str
    prompt: str
    image_url: str | None = None


class AudioGenerationPayload(CamelModel):
    project_id: str
    prompt: str
    duration: float | None = None


class ImageGenerationPayload(CamelModel):
    project_id: str
    prompt: str
    image_url: str | None = None


class StitchVideoPayload(CamelModel):
    project_id: str


class GenerationStarted(CamelModel):
    project_id: str
    dispatch: DispatchReceipt
