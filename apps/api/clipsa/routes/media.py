"""Media fetch routes addressed by blob id."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import Response, StreamingResponse

from clipsa.errors import ApiError
from clipsa.repositories.blobs import BlobNotFound, BlobStore
from clipsa.routes.dependencies import get_blob_store
from clipsa.schemas.error import NotFoundError

router = APIRouter(prefix="/media", tags=["Media"])


def _not_found() -> ApiError:
    return ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="File not found")


@router.get("/{mediaId}", responses={404: {"model": NotFoundError}})
def get_media(
    media_id: Annotated[str, Path(alias="mediaId")],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
) -> StreamingResponse:
    try:
        info = blobs.stat(media_id)
        chunks = blobs.fetch(media_id)
    except BlobNotFound as exc:
        raise _not_found() from exc
    return StreamingResponse(
        chunks,
        media_type=info.content_type,
        headers={"Content-Length": str(info.size_bytes)},
    )


@router.delete(
    "/{mediaId}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": NotFoundError}},
)
def delete_media(
    media_id: Annotated[str, Path(alias="mediaId")],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
) -> Response:
    try:
        blobs.delete(media_id)
    except BlobNotFound as exc:
        raise _not_found() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
