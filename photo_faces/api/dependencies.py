"""FastAPI dependency providers."""
from fastapi import HTTPException, Request

from photo_faces.core.container import ServiceContainer
from photo_faces.core.logging import get_logger

logger = get_logger(__name__)


async def get_container(request: Request) -> ServiceContainer:
    """Dependency provider for the application's ServiceContainer.

    Raises:
        HTTPException: 503 if the container was not initialized by the lifespan handler
    """
    container = getattr(request.app.state, "container", None)
    if container is None or not container.is_initialized:
        logger.error("Service container requested before initialization")
        raise HTTPException(status_code=503, detail="Service is not ready")
    return container
