"""Relational embedding store for persons, images and detections."""
from contextlib import asynccontextmanager
from itertools import groupby
from typing import AsyncGenerator, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from photo_faces.core.exceptions import StorageError
from photo_faces.core.logging import get_logger
from photo_faces.domain.entities.face import BoundingBox
from photo_faces.domain.entities.records import DetectionRecord, ImageRecord, PersonRecord
from photo_faces.domain.value_objects.recognition import (
    MatchedDetection,
    PersonGallery,
    StoreCounts,
)
from photo_faces.infrastructure.database.models import Base
from photo_faces.infrastructure.database.session import create_session_factory, get_db_session
from photo_faces.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


class EmbeddingStore:
    """Durable store for persons, images and detections.

    Persons, images and detections are append-only; the only destructive
    operation is ``reset_schema``, which must be invoked explicitly.

    Every public method runs in its own transaction. Callers that need several
    writes to succeed or fail together use ``transaction()``.

    Example:
        ```python
        store = EmbeddingStore(engine)
        await store.create_schema()

        async with store.transaction() as uow:
            image_id = await uow.images.get_or_create("photos/a.jpg")
            person_id = await uow.persons.create(embedding)
            await uow.detections.create(person_id, image_id, box)
        ```
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        """Initialize the store.

        Args:
            engine: Async engine of the backing database
            session_factory: Optional session factory, created from the engine if omitted
        """
        self._engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def create_schema(self) -> None:
        """Create missing tables, keeping existing data.

        Raises:
            StorageError: If the schema cannot be created
        """
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("Failed to create schema", error=str(e))
            raise StorageError(f"Failed to create schema: {e}") from e

    async def reset_schema(self) -> None:
        """Drop and recreate all tables, discarding every stored identity.

        Raises:
            StorageError: If the schema cannot be reset
        """
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("Failed to reset schema", error=str(e))
            raise StorageError(f"Failed to reset schema: {e}") from e
        logger.warning("Embedding store reset, all persons and detections discarded")

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[UnitOfWork, None]:
        """Create a transaction scope.

        The transaction is committed if the block completes and rolled back if
        it raises. Database failures surface as ``StorageError``.

        Yields:
            UnitOfWork: Repositories bound to the transaction's session
        """
        try:
            async with get_db_session(self._session_factory) as session:
                async with UnitOfWork(session) as uow:
                    yield uow
        except SQLAlchemyError as e:
            logger.error("Embedding store transaction failed", error=str(e))
            raise StorageError(f"Embedding store transaction failed: {e}") from e

    async def record_image(self, path: str) -> int:
        """Record an image path, returning the existing id if already known."""
        async with self.transaction() as uow:
            return await uow.images.get_or_create(path)

    async def create_person(self, descriptor: Sequence[float]) -> int:
        """Create a person holding one reference descriptor."""
        async with self.transaction() as uow:
            return await uow.persons.create(descriptor)

    async def add_descriptor(self, person_id: int, descriptor: Sequence[float]) -> None:
        """Append a reference descriptor to an existing person."""
        async with self.transaction() as uow:
            await uow.persons.add_descriptor(person_id, descriptor)

    async def record_detection(self, person_id: int, image_id: int, box: BoundingBox) -> int:
        """Record a face of ``person_id`` in ``image_id``."""
        async with self.transaction() as uow:
            return await uow.detections.create(person_id, image_id, box)

    async def list_persons(self) -> List[PersonRecord]:
        """Get all persons in ascending id order."""
        async with self.transaction() as uow:
            return await uow.persons.list_all()

    async def is_image_indexed(self, path: str) -> bool:
        async with self.transaction() as uow:
            return await uow.images.exists(path)

    async def get_image(self, path: str) -> Optional[ImageRecord]:
        async with self.transaction() as uow:
            return await uow.images.get_by_path(path)

    async def detections_in_image(self, path: str) -> List[DetectionRecord]:
        """Get the detections recorded for an image path, empty if it was never recorded."""
        async with self.transaction() as uow:
            image = await uow.images.get_by_path(path)
            if image is None:
                return []
            return await uow.detections.get_by_image(image.id)

    async def detections_for_person(self, person_id: int) -> List[MatchedDetection]:
        """Get every detection on record for a person."""
        async with self.transaction() as uow:
            return await uow.detections.get_by_person(person_id)

    async def gallery(self) -> List[PersonGallery]:
        """Get all detections grouped by person, in ascending person id."""
        async with self.transaction() as uow:
            detections = await uow.detections.list_all()
        return [
            PersonGallery(person_id=person_id, detections=list(group))
            for person_id, group in groupby(detections, key=lambda d: d.person_id)
        ]

    async def counts(self) -> StoreCounts:
        async with self.transaction() as uow:
            return StoreCounts(
                persons=await uow.persons.count(),
                images=await uow.images.count(),
                detections=await uow.detections.count(),
            )
