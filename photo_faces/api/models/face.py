"""API specific face models."""
from typing import List

from pydantic import BaseModel, Field

from photo_faces.domain.entities.face import BoundingBox
from photo_faces.domain.value_objects.recognition import (
    PersonGallery,
    PersonMatches,
    QueryResult,
    QueryStatus,
    StoreCounts,
)


class FolderIndexingRequest(BaseModel):
    """Request model for the /index endpoint."""
    folder: str = Field(
        ...,
        description="Directory whose images should be indexed",
        min_length=1, max_length=4096
    )


class MatchRecord(BaseModel):
    """API model for one detection of a matched person."""
    person_id: int = Field(..., description="Matched person identifier")
    image_path: str = Field(..., description="Image containing the face")
    box: BoundingBox = Field(..., description="Face bounding box in pixel coordinates")


class QueryResponse(BaseModel):
    """Response model for the /query endpoint."""
    status: QueryStatus = Field(..., description="Outcome of the query")
    message: str = Field(..., description="Human readable outcome")
    matches: List[MatchRecord] = Field(..., description="Every detection of every matched person")
    persons: List[PersonMatches] = Field(..., description="Matched persons with their detections")

    @classmethod
    def from_service_response(cls, result: QueryResult) -> "QueryResponse":
        """Convert the service layer result to the API response model."""
        return cls(
            status=result.status,
            message=result.message,
            matches=[
                MatchRecord(person_id=d.person_id, image_path=d.image_path, box=d.box)
                for d in result.matches
            ],
            persons=result.persons,
        )


class GalleryResponse(BaseModel):
    """Response model for the /persons endpoint."""
    persons: List[PersonGallery] = Field(..., description="Every person with all detections")
    counts: StoreCounts = Field(..., description="Row counts of the store")


class ResetResponse(BaseModel):
    """Response model for the /reset endpoint."""
    status: str = Field("reset", description="Always 'reset' on success")
