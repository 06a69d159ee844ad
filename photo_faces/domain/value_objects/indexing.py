"""Indexing pipeline value objects."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ImageState(str, Enum):
    """Terminal state of one image in an indexing pass."""
    SKIPPED = "skipped"
    PERSISTED = "persisted"
    # Examined without faces and left unrecorded so a later run looks again
    NOT_RECORDED = "not_recorded"
    FAILED = "failed"


class ImageIndexResult(BaseModel):
    """Outcome of indexing a single image."""
    path: str
    state: ImageState
    faces: int = Field(0, description="Number of faces resolved and recorded")
    new_persons: int = Field(0, description="Number of persons created for this image")
    person_ids: List[int] = Field(default_factory=list, description="Person of each recorded face, in order")
    error: Optional[str] = None


class IndexSummary(BaseModel):
    """Counters for a whole indexing pass."""
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    faces: int = 0
    new_persons: int = 0

    def add(self, result: ImageIndexResult) -> None:
        if result.state is ImageState.SKIPPED:
            self.skipped += 1
        elif result.state is ImageState.FAILED:
            self.failed += 1
        else:
            self.processed += 1
        self.faces += result.faces
        self.new_persons += result.new_persons


class IndexProgress(BaseModel):
    """Progress event emitted while indexing a folder."""
    index: int = Field(..., description="1-based position of the image, equal to total on the completion event")
    total: int = Field(..., description="Number of candidate images in the folder")
    message: str
    result: Optional[ImageIndexResult] = None
    completed: bool = False
    summary: Optional[IndexSummary] = None
