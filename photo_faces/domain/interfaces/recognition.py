"""Face detector interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from ..entities.face import DetectedFace


class FaceDetector(ABC):
    """Interface for face detection and embedding extraction."""

    @abstractmethod
    async def detect(
        self,
        image: np.ndarray,
        max_faces: Optional[int] = None,
    ) -> List[DetectedFace]:
        """
        Detect faces in a decoded image and extract their embeddings.

        Args:
            image: Decoded image as a numpy array (BGR, height x width x channels)
            max_faces: Maximum number of faces to return (None for no limit)

        Returns:
            List of detected faces with pixel bounding boxes and embeddings.
            Returns an empty list when the image contains no faces.

        Raises:
            Exception: Any failure of the underlying model; callers treat it as a
                per-image detection failure.
        """
        pass
