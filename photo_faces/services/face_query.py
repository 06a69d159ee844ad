"""Face query service for finding known persons in a probe image."""
import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import numpy as np

from photo_faces.core.config import Settings, settings as default_settings
from photo_faces.core.exceptions import DetectionFailure
from photo_faces.core.logging import get_logger
from photo_faces.domain.interfaces.imaging import ImageLoader
from photo_faces.domain.interfaces.recognition import FaceDetector
from photo_faces.domain.value_objects.recognition import (
    PersonGallery,
    PersonMatches,
    QueryResult,
    QueryStatus,
)
from photo_faces.infrastructure.database.store import EmbeddingStore
from photo_faces.services.identity_matcher import IdentityMatcher

logger = get_logger(__name__)


class FaceQueryService:
    """Service for matching probe faces against the known persons.

    This service:
    1. Decodes the probe image and detects its faces
    2. Matches every face with the identity matcher
    3. Returns each confidently matched person once, with all their detections

    Example:
        ```python
        service = FaceQueryService(store, matcher, detector, image_loader)

        result = await service.query_by_image("probe.jpg")
        if result.status is QueryStatus.MATCHED:
            for person in result.persons:
                print(person.person_id, [d.image_path for d in person.detections])
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
        """Initialize the face query service.

        Args:
            store: Embedding store holding the detections
            matcher: Identity matcher shared with the indexing service
            detector: Face detector producing embeddings for the probe
            image_loader: Decoder turning probe files or bytes into pixel arrays
            settings: Application settings, defaults to the module settings
            lock: Lock guarding the matcher, shared with the indexing service
        """
        self._store = store
        self._matcher = matcher
        self._detector = detector
        self._image_loader = image_loader
        self._settings = settings or default_settings
        self._lock = lock or asyncio.Lock()

    async def query_by_image(self, path: Union[str, Path]) -> QueryResult:
        """Find the known persons appearing in an image file.

        Raises:
            DetectionFailure: If the probe cannot be decoded or the detector fails
        """
        if not len(self._matcher):
            return self._nothing_indexed()
        image = await self._run_loader(self._image_loader.load, path, source=str(path))
        return await self._query_image(image, source=str(path))

    async def query_by_bytes(self, image_bytes: bytes, source: str = "upload") -> QueryResult:
        """Find the known persons appearing in raw image bytes.

        Raises:
            DetectionFailure: If the probe cannot be decoded or the detector fails
        """
        if not len(self._matcher):
            return self._nothing_indexed()
        image = await self._run_loader(self._image_loader.decode, image_bytes, source=source)
        return await self._query_image(image, source=source)

    async def query_embeddings(self, embeddings: Iterable[np.ndarray]) -> QueryResult:
        """Match probe embeddings and collect the detections of every matched person.

        Faces without a confident match are ignored. A person matched by
        several faces is reported once, with the best distance. Matching and
        reading detections happen under the lock, so persons from an image
        that is still being indexed are not visible.

        Args:
            embeddings: Embeddings of the faces found in the probe

        Returns:
            QueryResult: Matched persons, or the status explaining why there are none
        """
        embeddings = list(embeddings)
        async with self._lock:
            return await self._match_embeddings(embeddings)

    async def _match_embeddings(self, embeddings: List[np.ndarray]) -> QueryResult:
        if not len(self._matcher):
            return self._nothing_indexed()

        if not embeddings:
            return QueryResult(
                status=QueryStatus.NO_FACE_FOUND,
                message="No faces could be detected in the query image."
            )

        best: Dict[int, float] = {}
        for embedding in embeddings:
            result = self._matcher.match(embedding)
            logger.debug(
                "Probe face matched",
                person_id=result.person_id,
                distance=result.distance,
                confident=result.is_confident
            )
            if not result.is_confident:
                continue
            best[result.person_id] = min(best.get(result.person_id, result.distance), result.distance)

        if not best:
            return QueryResult(
                status=QueryStatus.NO_CONFIDENT_MATCH,
                message="No confident match found in the database."
            )

        persons: List[PersonMatches] = []
        for person_id, distance in best.items():
            detections = await self._store.detections_for_person(person_id)
            persons.append(PersonMatches(person_id=person_id, distance=distance, detections=detections))

        logger.info(
            "Query matched known persons",
            faces=len(embeddings),
            persons=list(best)
        )
        ids = ", ".join(str(person_id) for person_id in best)
        return QueryResult(
            status=QueryStatus.MATCHED,
            message=f"Found match for Person ID: {ids}",
            persons=persons,
        )

    async def gallery(self) -> List[PersonGallery]:
        """Get every person with all their detections."""
        return await self._store.gallery()

    async def _run_loader(self, loader: Callable[[Any], np.ndarray], argument: Any, source: str) -> np.ndarray:
        try:
            return await asyncio.to_thread(loader, argument)
        except Exception as e:
            logger.error("Failed to load query image", source=source, error=str(e))
            raise DetectionFailure(f"Cannot load query image {source}: {e}", details={"source": source}) from e

    async def _query_image(self, image: np.ndarray, source: str) -> QueryResult:
        try:
            faces = await self._detector.detect(image)
        except Exception as e:
            logger.error("Face detection failed for query image", source=source, error=str(e), exc_info=True)
            raise DetectionFailure(f"Face detection failed for {source}: {e}", details={"source": source}) from e

        faces = [f for f in faces if f.confidence >= self._settings.MIN_FACE_CONFIDENCE]
        logger.info("Processing query image", source=source, faces=len(faces))
        return await self.query_embeddings(face.embedding for face in faces)

    @staticmethod
    def _nothing_indexed() -> QueryResult:
        return QueryResult(
            status=QueryStatus.NOTHING_INDEXED,
            message="No faces indexed yet. Please index a folder first."
        )
