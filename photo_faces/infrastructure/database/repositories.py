"""Database repositories for the embedding store."""
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from photo_faces.core.exceptions import EmbeddingDimensionError, ReferentialError
from photo_faces.domain.entities.face import BoundingBox
from photo_faces.domain.entities.records import DetectionRecord, ImageRecord, PersonRecord
from photo_faces.domain.value_objects.recognition import MatchedDetection
from photo_faces.infrastructure.database.models import Detection, Image, Person


def _to_vector(descriptor: Sequence[float]) -> List[float]:
    vector = [float(v) for v in descriptor]
    if not vector:
        raise EmbeddingDimensionError("Descriptor must not be empty")
    return vector


class PersonRepository:
    """Repository for person operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def dimension(self) -> Optional[int]:
        """Get the descriptor dimensionality of the store.

        Returns:
            Optional[int]: Dimension of the first stored person, None for an empty store
        """
        stmt = select(Person.dimension).order_by(Person.id).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _check_dimension(self, vector: List[float]) -> None:
        expected = await self.dimension()
        if expected is not None and len(vector) != expected:
            raise EmbeddingDimensionError(
                f"Descriptor has {len(vector)} dimensions, store uses {expected}",
                details={"expected": expected, "actual": len(vector)}
            )

    async def create(self, descriptor: Sequence[float]) -> int:
        """Create a new person holding a single reference descriptor.

        Args:
            descriptor: Face embedding of the detection that introduced the person

        Returns:
            int: Newly assigned person id

        Raises:
            EmbeddingDimensionError: If the descriptor length differs from the store's
        """
        vector = _to_vector(descriptor)
        await self._check_dimension(vector)
        person = Person(dimension=len(vector), descriptors=[vector])
        self._session.add(person)
        await self._session.flush()
        return person.id

    async def add_descriptor(self, person_id: int, descriptor: Sequence[float]) -> None:
        """Append a reference descriptor to an existing person.

        Raises:
            ReferentialError: If the person does not exist
            EmbeddingDimensionError: If the descriptor length differs from the person's
        """
        person = await self._session.get(Person, person_id)
        if person is None:
            raise ReferentialError(f"Unknown person: {person_id}", details={"person_id": person_id})
        vector = _to_vector(descriptor)
        if len(vector) != person.dimension:
            raise EmbeddingDimensionError(
                f"Descriptor has {len(vector)} dimensions, person {person_id} uses {person.dimension}",
                details={"expected": person.dimension, "actual": len(vector)}
            )
        # Reassign so the JSON column is flagged as modified
        person.descriptors = [*person.descriptors, vector]
        await self._session.flush()

    async def exists(self, person_id: int) -> bool:
        return await self._session.get(Person, person_id) is not None

    async def list_all(self) -> List[PersonRecord]:
        """Get all persons in ascending id order."""
        stmt = select(Person).order_by(Person.id)
        result = await self._session.execute(stmt)
        return [
            PersonRecord(id=person.id, descriptors=person.descriptors)
            for person in result.scalars().all()
        ]

    async def count(self) -> int:
        result = await self._session.execute(select(func.count(Person.id)))
        return result.scalar_one()


class ImageRepository:
    """Repository for image operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get_by_path(self, path: str) -> Optional[ImageRecord]:
        """Get image by path.

        Args:
            path: Image file path

        Returns:
            Optional[ImageRecord]: Found image, None if the path was never recorded
        """
        stmt = select(Image).where(Image.path == path)
        result = await self._session.execute(stmt)
        image = result.scalar_one_or_none()
        if image is None:
            return None
        return ImageRecord(id=image.id, path=image.path)

    async def get_or_create(self, path: str) -> int:
        """Get image id by path or record the path if not known.

        Args:
            path: Image file path

        Returns:
            int: Existing or newly assigned image id
        """
        image = await self.get_by_path(path)
        if image is not None:
            return image.id
        image = Image(path=path)
        self._session.add(image)
        await self._session.flush()
        return image.id

    async def exists(self, path: str) -> bool:
        return await self.get_by_path(path) is not None

    async def count(self) -> int:
        result = await self._session.execute(select(func.count(Image.id)))
        return result.scalar_one()


class DetectionRepository:
    """Repository for detection operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def create(self, person_id: int, image_id: int, box: BoundingBox) -> int:
        """Create a new detection record.

        Args:
            person_id: Person the face belongs to
            image_id: Image the face was found in
            box: Face bounding box in pixel coordinates

        Returns:
            int: Newly assigned detection id

        Raises:
            ReferentialError: If the person or the image does not exist
        """
        if await self._session.get(Person, person_id) is None:
            raise ReferentialError(f"Unknown person: {person_id}", details={"person_id": person_id})
        if await self._session.get(Image, image_id) is None:
            raise ReferentialError(f"Unknown image: {image_id}", details={"image_id": image_id})

        detection = Detection(
            person_id=person_id,
            image_id=image_id,
            box_x=box.x,
            box_y=box.y,
            box_width=box.width,
            box_height=box.height,
        )
        self._session.add(detection)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ReferentialError(
                f"Detection references a missing row: {e.orig}",
                details={"person_id": person_id, "image_id": image_id}
            ) from e
        return detection.id

    async def get_by_person(self, person_id: int) -> List[MatchedDetection]:
        """Get every detection of a person with its image path.

        Args:
            person_id: Person identifier

        Returns:
            List[MatchedDetection]: Detections in recording order
        """
        stmt = (
            select(Detection, Image.path)
            .join(Image, Detection.image_id == Image.id)
            .where(Detection.person_id == person_id)
            .order_by(Detection.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_matched(detection, path) for detection, path in result.all()]

    async def get_by_image(self, image_id: int) -> List[DetectionRecord]:
        """Get the detections recorded for one image, in recording order."""
        stmt = select(Detection).where(Detection.image_id == image_id).order_by(Detection.id)
        result = await self._session.execute(stmt)
        return [
            DetectionRecord(
                id=detection.id,
                person_id=detection.person_id,
                image_id=detection.image_id,
                box=BoundingBox(
                    x=detection.box_x,
                    y=detection.box_y,
                    width=detection.box_width,
                    height=detection.box_height,
                ),
            )
            for detection in result.scalars().all()
        ]

    async def list_all(self) -> List[MatchedDetection]:
        """Get every detection ordered by person, then recording order."""
        stmt = (
            select(Detection, Image.path)
            .join(Image, Detection.image_id == Image.id)
            .order_by(Detection.person_id, Detection.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_matched(detection, path) for detection, path in result.all()]

    async def count(self) -> int:
        result = await self._session.execute(select(func.count(Detection.id)))
        return result.scalar_one()

    @staticmethod
    def _to_matched(detection: Detection, path: str) -> MatchedDetection:
        return MatchedDetection(
            person_id=detection.person_id,
            image_path=path,
            box=BoundingBox(
                x=detection.box_x,
                y=detection.box_y,
                width=detection.box_width,
                height=detection.box_height,
            ),
        )
