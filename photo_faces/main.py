"""Main application module for the photo-faces service."""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI

from photo_faces.api import router as api_v1_router
from photo_faces.core.config import Settings, settings as default_settings
from photo_faces.core.container import ServiceContainer
from photo_faces.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings, defaults to the module settings
        container: Pre-built container; one is created from ``settings`` if omitted

    Returns:
        FastAPI: Application whose lifespan initializes and cleans up the container
    """
    settings = settings or default_settings
    container = container or ServiceContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, None]:
        """Handle application startup and shutdown events."""
        logger.info(
            "Starting up photo-faces service",
            version=settings.VERSION,
            environment=settings.ENVIRONMENT,
        )
        if not container.is_initialized:
            await container.initialize()
        app.state.container = container
        logger.info("Initialized application services")

        yield

        logger.info("Shutting down photo-faces service")
        await container.cleanup()
        logger.info("Cleaned up application resources")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
        lifespan=lifespan,
    )
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/health")
    async def health_check() -> dict:
        """Basic health check endpoint.

        Returns:
            dict: Health status
        """
        return {"status": "healthy"}

    return app


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    setup_logging(default_settings)
    uvicorn.run(create_app(), host=default_settings.HOST, port=default_settings.PORT)


if __name__ == "__main__":
    run()
