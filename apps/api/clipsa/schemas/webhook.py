"""Provider webhook schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class ProviderWebhookRequest(BaseModel):
    """Completion notification body posted by the generation provider."""

    model_config = ConfigDict(extra="allow")

    request_id: str | None = None
    status: str | None = None
    payload: Any = None
    error: Any = None


class WebhookAck(BaseModel):
    success: bool = True
