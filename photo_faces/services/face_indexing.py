"""Face indexing service resolving detections to recurring persons."""
import asyncio
from pathlib import Path
from typing import AsyncGenerator, List, Optional, Tuple, Union

import numpy as np

from photo_faces.core.config import Settings, settings as default_settings
from photo_faces.core.exceptions import DetectionFailure, EmbeddingDimensionError, InvalidFolderError
from photo_faces.core.logging import get_logger
from photo_faces.domain.entities.face import DetectedFace
from photo_faces.domain.interfaces.imaging import ImageLoader
from photo_faces.domain.interfaces.recognition import FaceDetector
from photo_faces.domain.value_objects.indexing import (
    ImageIndexResult,
    ImageState,
    IndexProgress,
    IndexSummary,
)
from photo_faces.infrastructure.database.store import EmbeddingStore
from photo_faces.infrastructure.database.unit_of_work import UnitOfWork
from photo_faces.services.identity_matcher import IdentityMatcher

logger = get_logger(__name__)


class FaceIndexingService:
    """Service for indexing the faces of a photo collection.

    Each image is examined at most once: already recorded paths are skipped.
    Every detected face is matched against the known persons; a face without a
    confident match becomes a new person, and that person is added to the
    matcher before the next face is resolved. All writes for one image happen
    in a single transaction.

    Images are processed strictly one after another since the matcher is
    shared mutable state. The resolve-and-commit step of every image runs under
    ``lock``, which queries also take, so a query never sees a person whose
    transaction has not committed yet.

    Example:
        ```python
        service = FaceIndexingService(store, matcher, detector, image_loader)

        async for event in service.index_folder("photos/2024"):
            print(event.message)
        ```
    """

    def __init__(
        self,
        store: EmbeddingStore,
        matcher: IdentityMatcher,
        detector: FaceDetector,
        image_loader: ImageLoader,
        settings: Optional[Settings] = None,
        lock: Optional[asyncio.Lock] = None,
    ) -> None:
        """Initialize the face indexing service.

        Args:
            store: Embedding store persisting persons, images and detections
            matcher: Identity matcher kept consistent with the store's persons
            detector: Face detector producing boxes and embeddings
            image_loader: Decoder turning image files into pixel arrays
            settings: Application settings, defaults to the module settings
            lock: Lock guarding the matcher, shared with the query service
        """
        self._store = store
        self._matcher = matcher
        self._detector = detector
        self._image_loader = image_loader
        self._settings = settings or default_settings
        self._lock = lock or asyncio.Lock()

    def list_images(self, folder: Union[str, Path]) -> List[Path]:
        """List indexable images directly inside ``folder``.

        Args:
            folder: Directory to scan (not recursive)

        Returns:
            Image paths sorted by name

        Raises:
            InvalidFolderError: If ``folder`` is not an existing directory
        """
        folder_path = Path(folder)
        if not folder_path.is_dir():
            raise InvalidFolderError(f"Not a directory: {folder}", details={"folder": str(folder)})

        extensions = set(self._settings.image_extensions)
        return sorted(
            p for p in folder_path.iterdir()
            if p.is_file() and p.suffix.lower() in extensions
        )

    async def index_folder(self, folder: Union[str, Path]) -> AsyncGenerator[IndexProgress, None]:
        """Index every image of a folder, yielding one event per image.

        The last event has ``completed`` set and carries the pass summary.

        Args:
            folder: Directory containing the images

        Yields:
            IndexProgress: Progress events

        Raises:
            InvalidFolderError: If ``folder`` is not an existing directory
            StorageError: If the embedding store fails; the run stops
        """
        images = self.list_images(folder)
        summary = IndexSummary(total=len(images))
        logger.info("Indexing started", folder=str(folder), images=len(images))

        for index, path in enumerate(images, start=1):
            result = await self.index_image(path)
            summary.add(result)
            yield IndexProgress(
                index=index,
                total=len(images),
                message=self._describe(result),
                result=result,
            )

        logger.info("Indexing complete", folder=str(folder), **summary.model_dump())
        yield IndexProgress(
            index=len(images),
            total=len(images),
            message=(
                f"Indexing complete: {summary.processed} processed, {summary.skipped} skipped, "
                f"{summary.failed} failed, {summary.faces} faces, {summary.new_persons} new persons"
            ),
            completed=True,
            summary=summary,
        )

    async def index_image(self, path: Union[str, Path]) -> ImageIndexResult:
        """Index the faces of a single image.

        Args:
            path: Image file path

        Returns:
            ImageIndexResult: What happened to the image. Detection failures and
            embeddings that do not fit the store are reported with state
            ``FAILED`` rather than raised.

        Raises:
            StorageError: If the embedding store fails; nothing of the image is kept
        """
        key = self.image_key(path)

        if await self._store.is_image_indexed(key):
            logger.debug("Image already indexed, skipping", path=key)
            return ImageIndexResult(path=key, state=ImageState.SKIPPED)

        try:
            faces = await self._detect(path)
        except DetectionFailure as e:
            logger.error("Face detection failed, continuing", path=key, error=str(e))
            return ImageIndexResult(path=key, state=ImageState.FAILED, error=str(e))

        if not faces and self._settings.RESCAN_FACELESS_IMAGES:
            logger.info("No faces detected, image left unrecorded", path=key)
            return ImageIndexResult(path=key, state=ImageState.NOT_RECORDED)

        try:
            async with self._lock:
                return await self._persist(key, faces)
        except EmbeddingDimensionError as e:
            logger.error("Face embeddings do not fit the store, continuing", path=key, error=str(e))
            return ImageIndexResult(path=key, state=ImageState.FAILED, error=str(e))

    async def _persist(self, key: str, faces: List[DetectedFace]) -> ImageIndexResult:
        """Resolve and record the faces of one image in a single transaction.

        Must be called with the lock held.
        """
        created: List[int] = []
        appended: List[Tuple[int, np.ndarray]] = []
        person_ids: List[int] = []
        try:
            async with self._store.transaction() as uow:
                # Another run may have recorded the image while this one was detecting
                if await uow.images.exists(key):
                    logger.debug("Image indexed concurrently, skipping", path=key)
                    return ImageIndexResult(path=key, state=ImageState.SKIPPED)

                image_id = await uow.images.get_or_create(key)
                for face in faces:
                    person_id = await self._resolve(uow, face, created, appended)
                    await uow.detections.create(person_id, image_id, face.box)
                    person_ids.append(person_id)
        except Exception as e:
            # The transaction rolled back, so persons created for this image never existed
            for person_id in created:
                self._matcher.remove_person(person_id)
            logger.error(
                "Failed to persist image, rolled back",
                path=key,
                error=str(e),
                discarded_persons=created
            )
            raise

        for person_id, embedding in appended:
            self._matcher.add_descriptor(person_id, embedding)

        logger.info(
            "Indexed image",
            path=key,
            faces=len(faces),
            new_persons=len(created)
        )
        return ImageIndexResult(
            path=key,
            state=ImageState.PERSISTED,
            faces=len(faces),
            new_persons=len(created),
            person_ids=person_ids,
        )

    @staticmethod
    def image_key(path: Union[str, Path]) -> str:
        """Get the stored identity of an image path (absolute, normalized)."""
        return str(Path(path).resolve())

    async def _detect(self, path: Union[str, Path]) -> List[DetectedFace]:
        """Load an image and detect its faces.

        Raises:
            DetectionFailure: If the image cannot be decoded or the detector fails
        """
        try:
            image = await asyncio.to_thread(self._image_loader.load, path)
            faces = await self._detector.detect(image, max_faces=self._settings.MAX_FACES_PER_IMAGE)
        except Exception as e:
            raise DetectionFailure(
                f"Face detection failed for {path}: {e}",
                details={"path": str(path), "error_type": type(e).__name__}
            ) from e

        confident = [f for f in faces if f.confidence >= self._settings.MIN_FACE_CONFIDENCE]
        if len(confident) < len(faces):
            logger.debug(
                "Dropped low confidence faces",
                path=str(path),
                dropped=len(faces) - len(confident),
                min_confidence=self._settings.MIN_FACE_CONFIDENCE
            )
        return confident

    async def _resolve(
        self,
        uow: UnitOfWork,
        face: DetectedFace,
        created: List[int],
        appended: List[Tuple[int, np.ndarray]],
    ) -> int:
        """Get the person a face belongs to, creating one if nobody matches.

        A created person is added to the matcher immediately so the next face
        can match it.
        """
        result = self._matcher.match(face.embedding)
        if result.is_confident:
            logger.debug("Face matched known person", person_id=result.person_id, distance=result.distance)
            if self._settings.APPEND_MATCHED_DESCRIPTORS:
                await uow.persons.add_descriptor(result.person_id, face.embedding)
                appended.append((result.person_id, face.embedding))
            return result.person_id

        person_id = await uow.persons.create(face.embedding)
        self._matcher.add_person(person_id, face.embedding)
        created.append(person_id)
        logger.debug("Created new person", person_id=person_id, closest_distance=result.distance)
        return person_id

    @staticmethod
    def _describe(result: ImageIndexResult) -> str:
        if result.state is ImageState.SKIPPED:
            return f"Skipped {result.path} (already indexed)"
        if result.state is ImageState.FAILED:
            return f"Failed {result.path}: {result.error}"
        if result.state is ImageState.NOT_RECORDED:
            return f"No faces in {result.path}"
        return f"Indexed {result.faces} faces from {result.path} ({result.new_persons} new persons)"
