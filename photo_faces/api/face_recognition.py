"""Face indexing and query API endpoints."""
import json
from pathlib import Path
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from photo_faces.api.dependencies import get_container
from photo_faces.api.models.face import (
    FolderIndexingRequest,
    GalleryResponse,
    QueryResponse,
    ResetResponse,
)
from photo_faces.core.container import ServiceContainer
from photo_faces.core.exceptions import (
    DetectionFailure,
    EmbeddingDimensionError,
    FaceIndexError,
    StorageError,
)
from photo_faces.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(
    tags=["faces"],
    responses={
        400: {"description": "Invalid request"},
        500: {"description": "Internal server error"}
    }
)


@router.post(
    "/index",
    summary="Index a folder of images",
    description=(
        "Detects faces in every image of a folder, resolves each to a known or new person "
        "and streams one JSON progress event per line."
    ),
    responses={
        200: {"description": "NDJSON stream of progress events", "content": {"application/x-ndjson": {}}},
        404: {"description": "Folder not found"},
    },
)
async def index_folder(
    request: FolderIndexingRequest,
    container: ServiceContainer = Depends(get_container),
) -> StreamingResponse:
    """Index a folder of images on the server's filesystem.

    Args:
        request: Folder indexing request
        container: Service container provided by dependency injection

    Returns:
        StreamingResponse emitting ``IndexProgress`` events as NDJSON

    Raises:
        HTTPException: If the folder does not exist
    """
    if not Path(request.folder).is_dir():
        logger.warning("Folder to index not found", folder=request.folder)
        raise HTTPException(status_code=404, detail=f"Folder not found: {request.folder}")

    async def stream() -> AsyncGenerator[str, None]:
        try:
            async for event in container.index_folder(request.folder):
                yield event.model_dump_json() + "\n"
        except FaceIndexError as e:
            # Headers are already sent, so the failure is reported in-band
            logger.error("Indexing aborted", folder=request.folder, error=str(e))
            yield json.dumps({"error": str(e), "completed": False}) + "\n"

    return StreamingResponse(stream(), media_type="application/x-ndjson")


@router.post(
    "/query",
    response_model=QueryResponse,
    summary="Find known persons in an image",
    description="Detects the faces of an uploaded image and returns every detection of each matched person.",
)
async def query_by_image(
    image: UploadFile = File(..., description="Query image (JPEG or PNG)"),
    container: ServiceContainer = Depends(get_container),
) -> QueryResponse:
    """Match the faces of an uploaded image against the known persons.

    Raises:
        HTTPException: If the image is invalid or processing fails
    """
    image_bytes = await image.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="No image file uploaded.")

    try:
        result = await container.query_by_bytes(image_bytes, source=image.filename or "upload")
        return QueryResponse.from_service_response(result)
    except DetectionFailure as e:
        logger.error("Invalid query image", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except EmbeddingDimensionError as e:
        logger.error("Query embeddings do not fit the store", error=str(e), details=e.details)
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        logger.error("Failed to read detections", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to read stored detections")


@router.get(
    "/persons",
    response_model=GalleryResponse,
    summary="List known persons",
    description="Returns every person with all of their detections.",
)
async def list_persons(container: ServiceContainer = Depends(get_container)) -> GalleryResponse:
    """Get the gallery of all known persons."""
    try:
        return GalleryResponse(persons=await container.gallery(), counts=await container.counts())
    except StorageError as e:
        logger.error("Failed to read gallery", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to read stored detections")


@router.post(
    "/reset",
    response_model=ResetResponse,
    summary="Reset the store",
    description="Drops every person, image and detection. This cannot be undone.",
)
async def reset_store(container: ServiceContainer = Depends(get_container)) -> ResetResponse:
    """Discard all stored identities."""
    try:
        await container.reset_store()
    except StorageError as e:
        logger.error("Failed to reset store", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to reset store")
    logger.warning("Store reset through API")
    return ResetResponse()
