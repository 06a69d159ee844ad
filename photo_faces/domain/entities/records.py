"""Typed records crossing the embedding store boundary."""
from typing import List

from pydantic import BaseModel, Field, field_validator

from photo_faces.domain.entities.face import BoundingBox


class PersonRecord(BaseModel):
    """A known person and their reference descriptors."""
    id: int = Field(..., description="Person identifier")
    descriptors: List[List[float]] = Field(..., description="Reference descriptors, oldest first")

    @field_validator("descriptors")
    @classmethod
    def validate_descriptors(cls, v: List[List[float]]) -> List[List[float]]:
        """A person always holds at least one descriptor of a single length."""
        if not v:
            raise ValueError("A person needs at least one descriptor")
        if len({len(d) for d in v}) != 1:
            raise ValueError("All descriptors of a person must share one dimension")
        return v

    @property
    def dimension(self) -> int:
        return len(self.descriptors[0])


class ImageRecord(BaseModel):
    """An examined image."""
    id: int
    path: str


class DetectionRecord(BaseModel):
    """One face occurrence attributed to a person."""
    id: int
    person_id: int
    image_id: int
    box: BoundingBox
