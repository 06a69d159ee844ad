"""Core face domain entities."""
from typing import Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoundingBox(BaseModel):
    """Face bounding box in image pixel coordinates."""
    x: float = Field(..., description="Left coordinate of the bounding box")
    y: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., description="Width of the bounding box", ge=0.0)
    height: float = Field(..., description="Height of the bounding box", ge=0.0)

    def scaled(self, factor: float) -> "BoundingBox":
        """Return the box multiplied by ``factor`` on both axes."""
        return BoundingBox(
            x=self.x * factor,
            y=self.y * factor,
            width=self.width * factor,
            height=self.height * factor,
        )


class DetectedFace(BaseModel):
    """One face found by the detector, with its embedding."""
    box: BoundingBox = Field(..., description="Bounding box coordinates")
    embedding: np.ndarray = Field(..., description="Face embedding vector")
    confidence: float = Field(1.0, description="Detection confidence score (0-1)")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("embedding", mode="before")
    @classmethod
    def validate_embedding(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        """Convert embedding to a flat float32 numpy array."""
        array = np.asarray(v, dtype=np.float32)
        if array.ndim != 1 or array.size == 0:
            raise ValueError("Embedding must be a non-empty one-dimensional vector")
        return array
