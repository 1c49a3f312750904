"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from clipsa.adapters.media import FfmpegToolchain, MediaToolchain
from clipsa.adapters.provider import FalQueueProvider, GenerationProvider, MockGenerationProvider
from clipsa.adapters.relay import JobRelay, QStashRelay
from clipsa.core.config import Settings, get_settings
from clipsa.errors import ApiError
from clipsa.jobs.dispatcher import Dispatcher
from clipsa.jobs.handlers import GenerationJobs
from clipsa.jobs.registry import JobRegistry
from clipsa.repositories.base import ProjectStore
from clipsa.repositories.blobs import BlobStore, InMemoryBlobStore
from clipsa.repositories.memory import InMemoryStore
from clipsa.routes import jobs_router, media_router, projects_router, webhooks_router
from clipsa.services.stitcher import Stitcher

logger = logging.getLogger(__name__)


def _build_relay(settings: Settings) -> JobRelay | None:
    if not settings.relay_configured:
        return None
    return QStashRelay(
        token=settings.qstash_token,
        base_url=settings.relay_base_url,
        forward_secret=settings.job_forward_secret,
        uses_loopback=settings.relay_uses_loopback,
        timeout=settings.http_timeout_seconds,
    )


def _build_provider(settings: Settings) -> GenerationProvider:
    if settings.generation_provider == "fal" and settings.fal_key:
        return FalQueueProvider(
            api_key=settings.fal_key,
            queue_url=settings.fal_queue_url,
            timeout=settings.http_timeout_seconds,
        )
    logger.warning(
        "provider.mock_selected configured=%s fal_key_set=%s",
        settings.generation_provider,
        bool(settings.fal_key),
    )
    return MockGenerationProvider()


def create_app(
    settings: Settings | None = None,
    *,
    relay: JobRelay | None = None,
    provider: GenerationProvider | None = None,
    toolchain: MediaToolchain | None = None,
    http_client: httpx.Client | None = None,
    store: ProjectStore | None = None,
    blobs: BlobStore | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    store = store or InMemoryStore()
    blobs = blobs or InMemoryBlobStore()
    http_client = http_client or httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True)

    relay = relay if relay is not None else _build_relay(settings)
    provider = provider or _build_provider(settings)

    registry = JobRegistry()
    dispatcher = Dispatcher(registry=registry, settings=settings, relay=relay)
    stitcher = Stitcher(
        store=store,
        blobs=blobs,
        toolchain=toolchain or FfmpegToolchain(settings.ffmpeg_binary),
        http_client=http_client,
        settings=settings,
    )
    GenerationJobs(
        store=store,
        provider=provider,
        dispatcher=dispatcher,
        stitcher=stitcher,
        settings=settings,
    ).register(registry)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        dispatcher.shutdown(wait_for_jobs=True)
        provider.close()
        if relay is not None:
            relay.close()
        http_client.close()

    app = FastAPI(title="Clipsa API", version="0.3.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.blobs = blobs
    app.state.registry = registry
    app.state.dispatcher = dispatcher

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    api_prefix = "/api"
    app.include_router(projects_router, prefix=api_prefix)
    app.include_router(jobs_router, prefix=api_prefix)
    app.include_router(webhooks_router, prefix=api_prefix)
    app.include_router(media_router, prefix=api_prefix)

    return app


app = create_app()
