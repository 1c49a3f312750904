"""API error response schemas."""

from typing import Any, Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class NotFoundError(BaseModel):
    code: Literal["RESOURCE_NOT_FOUND", "JOB_NOT_FOUND", "UNKNOWN_PROVIDER"]
    message: str


class WebhookRejectedError(BaseModel):
    code: Literal["MISSING_PROJECT_ID", "UNKNOWN_UNIT_TYPE"]
    message: str
    details: dict[str, Any] | None = None
