"""Provider webhook routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from clipsa.routes.dependencies import get_webhook_service
from clipsa.schemas.error import NotFoundError, WebhookRejectedError
from clipsa.schemas.webhook import ProviderWebhookRequest, WebhookAck
from clipsa.services.webhooks import ProviderWebhookService

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/{provider}",
    response_model=WebhookAck,
    responses={400: {"model": WebhookRejectedError}, 404: {"model": NotFoundError}},
)
def post_provider_webhook(
    provider: Annotated[str, Path()],
    payload: ProviderWebhookRequest,
    service: Annotated[ProviderWebhookService, Depends(get_webhook_service)],
    project_id: Annotated[str | None, Query(alias="projectId")] = None,
    scene_id: Annotated[str | None, Query(alias="sceneId")] = None,
    unit_type: Annotated[str | None, Query(alias="type")] = None,
) -> WebhookAck:
    service.ingest(
        provider=provider,
        project_id=project_id,
        unit_type=unit_type,
        scene_id=scene_id,
        body=payload,
    )
    return WebhookAck()
