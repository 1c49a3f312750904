"""Generation unit schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class UnitType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


class GenerationStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_GENERATION_STATUSES: frozenset[GenerationStatus] = frozenset(
    {GenerationStatus.SUCCEEDED, GenerationStatus.FAILED}
)


class GenerationUnit(BaseModel):
    request_id: str
    project_id: str
    unit_type: UnitType
    scene_id: str | None = None
    status: GenerationStatus = GenerationStatus.PENDING
    output: Any = None
    error: Any = None
    created_at: datetime
    updated_at: datetime | None = None
