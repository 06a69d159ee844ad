"""Service container owning the store, the matcher and the services."""
import asyncio
from pathlib import Path
from types import TracebackType
from typing import AsyncGenerator, List, Optional, Type, Union

from sqlalchemy.ext.asyncio import AsyncEngine

from photo_faces.core.config import Settings, settings as default_settings
from photo_faces.core.exceptions import ServiceNotInitializedError
from photo_faces.core.logging import get_logger
from photo_faces.core.utils.image import OpenCVImageLoader
from photo_faces.domain.interfaces.imaging import ImageLoader
from photo_faces.domain.interfaces.recognition import FaceDetector
from photo_faces.domain.value_objects.indexing import IndexProgress
from photo_faces.domain.value_objects.recognition import PersonGallery, QueryResult, StoreCounts
from photo_faces.infrastructure.database.session import create_engine
from photo_faces.infrastructure.database.store import EmbeddingStore
from photo_faces.services.face_indexing import FaceIndexingService
from photo_faces.services.face_query import FaceQueryService
from photo_faces.services.identity_matcher import IdentityMatcher

logger = get_logger(__name__)


class ServiceContainer:
    """Container for application services.

    The container is the single owner of the embedding store and the identity
    matcher; both services receive them from here, which keeps the matcher
    consistent with the store for the lifetime of the process.

    Every reader and writer of the matcher holds the shared ``asyncio.Lock``.

    Startup loads the existing store. Wiping it is a separate, explicit
    ``reset_store()`` call (or ``RESET_STORE_ON_STARTUP``).

    Example:
        ```python
        async with ServiceContainer(settings) as container:
            async for event in container.index_folder("photos"):
                print(event.message)
            result = await container.query_by_image("probe.jpg")
        ```
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        detector: Optional[FaceDetector] = None,
        image_loader: Optional[ImageLoader] = None,
    ) -> None:
        """Initialize empty container.

        Args:
            settings: Application settings, defaults to the module settings
            detector: Face detector, an InsightFace detector is created if omitted
            image_loader: Image decoder, an OpenCV loader is created if omitted
        """
        self.settings = settings or default_settings
        self.detector: Optional[FaceDetector] = detector
        self.image_loader: Optional[ImageLoader] = image_loader

        self.engine: Optional[AsyncEngine] = None
        self.store: Optional[EmbeddingStore] = None
        self.matcher: Optional[IdentityMatcher] = None
        self.lock: Optional[asyncio.Lock] = None

        self.face_indexing_service: Optional[FaceIndexingService] = None
        self.face_query_service: Optional[FaceQueryService] = None

    @property
    def is_initialized(self) -> bool:
        return self.store is not None

    async def initialize(self) -> None:
        """Initialize all services in the correct order."""
        self.engine = create_engine(self.settings)
        self.store = EmbeddingStore(self.engine)
        await self.store.create_schema()

        if self.settings.RESET_STORE_ON_STARTUP:
            logger.warning("RESET_STORE_ON_STARTUP is set, discarding stored identities")
            await self.store.reset_schema()

        self.matcher = IdentityMatcher.from_persons(
            await self.store.list_persons(),
            threshold=self.settings.MATCH_THRESHOLD,
        )
        self.lock = asyncio.Lock()

        if self.image_loader is None:
            self.image_loader = OpenCVImageLoader()
        if self.detector is None:
            from photo_faces.services.recognition.insight_face import InsightFaceDetector

            self.detector = await asyncio.to_thread(InsightFaceDetector, self.settings)

        self.face_indexing_service = FaceIndexingService(
            store=self.store,
            matcher=self.matcher,
            detector=self.detector,
            image_loader=self.image_loader,
            settings=self.settings,
            lock=self.lock,
        )
        self.face_query_service = FaceQueryService(
            store=self.store,
            matcher=self.matcher,
            detector=self.detector,
            image_loader=self.image_loader,
            settings=self.settings,
            lock=self.lock,
        )
        logger.info("Service container initialized", persons=len(self.matcher))

    async def cleanup(self) -> None:
        """Release the database engine and drop service references."""
        self.face_indexing_service = None
        self.face_query_service = None
        self.matcher = None
        self.lock = None
        self.store = None
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    async def __aenter__(self) -> "ServiceContainer":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.cleanup()

    def _require(self) -> None:
        if not self.is_initialized:
            raise ServiceNotInitializedError("Service container is not initialized")

    async def index_folder(self, folder: Union[str, Path]) -> AsyncGenerator[IndexProgress, None]:
        """Index a folder, yielding progress events."""
        self._require()
        async for event in self.face_indexing_service.index_folder(folder):
            yield event

    async def query_by_image(self, path: Union[str, Path]) -> QueryResult:
        self._require()
        return await self.face_query_service.query_by_image(path)

    async def query_by_bytes(self, image_bytes: bytes, source: str = "upload") -> QueryResult:
        self._require()
        return await self.face_query_service.query_by_bytes(image_bytes, source=source)

    async def gallery(self) -> List[PersonGallery]:
        self._require()
        return await self.face_query_service.gallery()

    async def counts(self) -> StoreCounts:
        self._require()
        return await self.store.counts()

    async def reset_store(self) -> None:
        """Discard every person, image and detection, in the store and the matcher."""
        self._require()
        async with self.lock:
            await self.store.reset_schema()
            self.matcher.clear()
