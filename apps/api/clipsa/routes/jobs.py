"""Job processing route: the relay's delivery target."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from clipsa.errors import ApiError, JobNotFound
from clipsa.jobs.registry import JobRegistry
from clipsa.routes.dependencies import get_registry, require_job_secret
from clipsa.schemas.error import ErrorResponse, NotFoundError
from clipsa.schemas.job import JobAccepted, JobEnvelope

router = APIRouter(tags=["Jobs"])
logger = logging.getLogger(__name__)


@router.post(
    "/jobs",
    response_model=JobAccepted,
    responses={401: {"model": ErrorResponse}, 404: {"model": NotFoundError}, 500: {"model": ErrorResponse}},
)
def process_job(
    envelope: JobEnvelope,
    __: Annotated[None, Depends(require_job_secret)],
    registry: Annotated[JobRegistry, Depends(get_registry)],
) -> JobAccepted:
    # Runs in the threadpool: handlers block on provider, store and ffmpeg calls.
    try:
        handler = registry.lookup(envelope.job_name)
    except JobNotFound as exc:
        logger.error("jobs.rejected job_name=%s code=%s", envelope.job_name, exc.code)
        raise ApiError(status_code=404, code=exc.code, message=str(exc)) from exc

    logger.info("jobs.received job_name=%s", envelope.job_name)
    try:
        handler(envelope.payload)
    except Exception as exc:
        # A 5xx makes the relay redeliver; handlers are idempotent per unit.
        logger.exception("jobs.failed job_name=%s", envelope.job_name)
        raise ApiError(
            status_code=500,
            code="JOB_FAILED",
            message="Internal Server Error",
            details={"job_name": envelope.job_name},
        ) from exc
    return JobAccepted()
