"""Identity matching and query value objects."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from photo_faces.domain.entities.face import BoundingBox

# Distance reported when no persons are known, on the threshold's unit scale
UNKNOWN_DISTANCE = 1.0


class MatchResult(BaseModel):
    """Best candidate for a query descriptor."""
    person_id: Optional[int] = Field(None, description="Closest known person, None when unknown")
    distance: float = Field(..., description="Euclidean distance to the closest reference descriptor")
    threshold: float = Field(..., description="Acceptance threshold in effect for this match")

    @property
    def is_unknown(self) -> bool:
        return self.person_id is None

    @property
    def is_confident(self) -> bool:
        """Whether the match is accepted as the same person (strictly below threshold)."""
        return self.person_id is not None and self.distance < self.threshold


class MatchedDetection(BaseModel):
    """A detection on record for a person, resolved to its image path."""
    person_id: int = Field(..., description="Person the detection belongs to")
    image_path: str = Field(..., description="Path of the image containing the face")
    box: BoundingBox = Field(..., description="Face bounding box in pixel coordinates")


class PersonMatches(BaseModel):
    """A person recognized in a probe, with everything on record for them."""
    person_id: int
    distance: float = Field(..., description="Best distance between probe faces and this person")
    detections: List[MatchedDetection] = Field(default_factory=list)


class PersonGallery(BaseModel):
    """All detections of one person."""
    person_id: int
    detections: List[MatchedDetection] = Field(default_factory=list)


class QueryStatus(str, Enum):
    """Outcome of a query; none of these are errors."""
    NOTHING_INDEXED = "nothing_indexed"
    NO_FACE_FOUND = "no_face_found"
    NO_CONFIDENT_MATCH = "no_confident_match"
    MATCHED = "matched"


class QueryResult(BaseModel):
    """Result of matching a probe against the known persons."""
    status: QueryStatus
    message: str
    persons: List[PersonMatches] = Field(default_factory=list)

    @property
    def matches(self) -> List[MatchedDetection]:
        """Flat list of every detection for every matched person."""
        return [detection for person in self.persons for detection in person.detections]


class StoreCounts(BaseModel):
    """Row counts of the embedding store."""
    persons: int = 0
    images: int = 0
    detections: int = 0
