"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from secrets import compare_digest
from typing import Annotated

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader

from clipsa.adapters.relay.qstash import FORWARDED_SECRET_HEADER
from clipsa.core.config import Settings
from clipsa.errors import ApiError
from clipsa.jobs.dispatcher import Dispatcher
from clipsa.jobs.registry import JobRegistry
from clipsa.repositories.base import ProjectStore
from clipsa.repositories.blobs import BlobStore
from clipsa.services.projects import ProjectService
from clipsa.services.webhooks import CompletionAggregator, ProviderWebhookService

job_secret_scheme = APIKeyHeader(
    name=FORWARDED_SECRET_HEADER,
    auto_error=False,
    scheme_name="jobForwardSecret",
)
logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ProjectStore:
    return request.app.state.store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blobs


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


async def require_job_secret(
    request: Request,
    job_secret: Annotated[str | None, Security(job_secret_scheme)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> None:
    """Validate the secret the relay forwards with every job delivery, when one is configured."""
    expected = settings.job_forward_secret
    if not expected:
        return
    if job_secret is None or not compare_digest(job_secret, expected):
        logger.warning(
            "jobs.auth_rejected method=%s path=%s reason=invalid_job_secret",
            request.method,
            request.url.path,
        )
        raise ApiError(status_code=401, code="UNAUTHORIZED", message="Invalid job authentication")


def get_project_service(
    store: Annotated[ProjectStore, Depends(get_store)],
    dispatcher: Annotated[Dispatcher, Depends(get_dispatcher)],
) -> ProjectService:
    return ProjectService(store, dispatcher)


def get_webhook_service(
    store: Annotated[ProjectStore, Depends(get_store)],
    dispatcher: Annotated[Dispatcher, Depends(get_dispatcher)],
) -> ProviderWebhookService:
    return ProviderWebhookService(CompletionAggregator(store=store, dispatcher=dispatcher))
