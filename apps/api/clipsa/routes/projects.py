"""Project routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from clipsa.routes.dependencies import get_project_service
from clipsa.schemas.error import ErrorResponse, NotFoundError
from clipsa.schemas.job import GenerationStarted
from clipsa.schemas.project import CreateImageRequest, CreateProjectRequest, Project
from clipsa.services.projects import ProjectService

router = APIRouter(tags=["Projects"])


@router.post(
    "/projects",
    response_model=Project,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_project(
    payload: CreateProjectRequest,
    service: Annotated[ProjectService, Depends(get_project_service)],
) -> Project:
    return service.create_project(payload)


@router.get(
    "/projects/{projectId}",
    response_model=Project,
    responses={404: {"model": NotFoundError}},
)
async def get_project(
    project_id: Annotated[str, Path(alias="projectId")],
    service: Annotated[ProjectService, Depends(get_project_service)],
) -> Project:
    return service.get_project(project_id)


@router.post(
    "/projects/{projectId}/generate",
    response_model=GenerationStarted,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": NotFoundError}, 409: {"model": ErrorResponse}},
)
def start_generation(
    project_id: Annotated[str, Path(alias="projectId")],
    service: Annotated[ProjectService, Depends(get_project_service)],
) -> GenerationStarted:
    return service.start_generation(project_id)


@router.post(
    "/generation/image",
    response_model=GenerationStarted,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
def create_image(
    payload: CreateImageRequest,
    service: Annotated[ProjectService, Depends(get_project_service)],
) -> GenerationStarted:
    return service.create_image(payload)
