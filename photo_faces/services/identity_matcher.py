"""
In-memory nearest-neighbour identity matcher.

The matcher is a disposable projection of the embedding store's persons:
person id -> matrix of reference descriptors. It is rebuilt from the store at
startup and extended one person at a time while indexing, and every addition
is visible to the next ``match`` call.

Matching is an exact linear scan: O(total reference descriptors) per query,
O(1) amortized per added person. That is adequate for hundreds to low
thousands of persons; beyond that an indexed search structure would be needed.

Example:
    ```python
    matcher = IdentityMatcher.from_persons(await store.list_persons(), threshold=0.55)
    result = matcher.match(face.embedding)
    if result.is_confident:
        person_id = result.person_id
    ```
"""
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from photo_faces.core.exceptions import EmbeddingDimensionError
from photo_faces.core.logging import get_logger
from photo_faces.domain.entities.records import PersonRecord
from photo_faces.domain.value_objects.recognition import UNKNOWN_DISTANCE, MatchResult

logger = get_logger(__name__)

Descriptor = Union[np.ndarray, Sequence[float]]


class IdentityMatcher:
    """Classifies descriptors against known persons by minimum Euclidean distance.

    Not thread-safe: it must only be mutated from the task that runs indexing.
    """

    def __init__(self, threshold: float = 0.55) -> None:
        """Create an empty matcher.

        Args:
            threshold: Distances strictly below this are accepted as the same person
        """
        if threshold <= 0:
            raise ValueError("Match threshold must be positive")
        self._threshold = float(threshold)
        self._references: Dict[int, np.ndarray] = {}
        self._dimension: Optional[int] = None

    @classmethod
    def from_persons(cls, persons: Iterable[PersonRecord], threshold: float = 0.55) -> "IdentityMatcher":
        """Build a matcher holding every descriptor of ``persons``."""
        matcher = cls(threshold=threshold)
        for person in persons:
            for i, descriptor in enumerate(person.descriptors):
                if i == 0:
                    matcher.add_person(person.id, descriptor)
                else:
                    matcher.add_descriptor(person.id, descriptor)
        logger.info(
            "Identity matcher loaded",
            persons=len(matcher),
            descriptors=matcher.descriptor_count,
            threshold=matcher.threshold
        )
        return matcher

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def person_ids(self) -> List[int]:
        return list(self._references)

    @property
    def descriptor_count(self) -> int:
        return sum(refs.shape[0] for refs in self._references.values())

    def __len__(self) -> int:
        return len(self._references)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._references

    def _as_vector(self, descriptor: Descriptor) -> np.ndarray:
        vector = np.asarray(descriptor, dtype=np.float32).reshape(-1)
        if vector.size == 0:
            raise EmbeddingDimensionError("Descriptor must not be empty")
        if self._dimension is not None and vector.size != self._dimension:
            raise EmbeddingDimensionError(
                f"Descriptor has {vector.size} dimensions, matcher uses {self._dimension}",
                details={"expected": self._dimension, "actual": int(vector.size)}
            )
        return vector

    def match(self, descriptor: Descriptor) -> MatchResult:
        """Find the known person closest to ``descriptor``.

        A person's distance is the minimum over their reference descriptors.
        Ties resolve to the person added first.

        Args:
            descriptor: Query embedding

        Returns:
            MatchResult: Closest person and distance, or an unknown result with
            distance ``UNKNOWN_DISTANCE`` when no persons are known
        """
        if not self._references:
            return MatchResult(person_id=None, distance=UNKNOWN_DISTANCE, threshold=self._threshold)

        query = self._as_vector(descriptor)
        best_id: Optional[int] = None
        best_distance = float("inf")
        for person_id, refs in self._references.items():
            distance = float(np.linalg.norm(refs - query, axis=1).min())
            if distance < best_distance:
                best_id, best_distance = person_id, distance

        return MatchResult(person_id=best_id, distance=best_distance, threshold=self._threshold)

    def add_person(self, person_id: int, descriptor: Descriptor) -> None:
        """Register a new person with one reference descriptor.

        Raises:
            ValueError: If the person is already known
            EmbeddingDimensionError: If the descriptor length differs from the matcher's
        """
        if person_id in self._references:
            raise ValueError(f"Person {person_id} is already known to the matcher")
        vector = self._as_vector(descriptor)
        self._references[person_id] = vector[np.newaxis, :]
        if self._dimension is None:
            self._dimension = int(vector.size)

    def add_descriptor(self, person_id: int, descriptor: Descriptor) -> None:
        """Append a reference descriptor to a known person.

        Raises:
            KeyError: If the person is not known
        """
        if person_id not in self._references:
            raise KeyError(person_id)
        vector = self._as_vector(descriptor)
        self._references[person_id] = np.vstack([self._references[person_id], vector])

    def remove_person(self, person_id: int) -> None:
        """Forget a person whose creation was not persisted."""
        self._references.pop(person_id, None)
        if not self._references:
            self._dimension = None

    def clear(self) -> None:
        """Forget every person."""
        self._references.clear()
        self._dimension = None
