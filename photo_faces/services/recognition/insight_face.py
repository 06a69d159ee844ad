"""
InsightFace-based implementation of the face detector.

This module provides the detector collaborator used by the indexing and query
services. It runs InsightFace's detection and recognition models on a decoded
image and reports pixel bounding boxes with L2-normalized 512-dimensional
embeddings, so Euclidean distances fall in [0, 2]. MATCH_THRESHOLD must be
tuned for the model in use.

Key Features:
    - Face detection with confidence scores
    - Face embedding extraction
    - Downscaling of very large images, with boxes mapped back to the original pixels
    - Model inference in a worker thread so the event loop stays responsive

Example:
    ```python
    detector = InsightFaceDetector(settings)
    image = OpenCVImageLoader().load("photo.jpg")
    faces = await detector.detect(image, max_faces=5)
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    modify the providers list in __init__ to include 'CUDAExecutionProvider'.
"""
import asyncio
import math
from typing import List, Optional, Tuple

import cv2
import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from photo_faces.core.config import Settings, settings as default_settings
from photo_faces.core.exceptions import ModelLoadError
from photo_faces.core.logging import get_logger
from photo_faces.domain.entities.face import BoundingBox, DetectedFace
from photo_faces.domain.interfaces.recognition import FaceDetector

logger = get_logger(__name__)


class InsightFaceDetector(FaceDetector):
    """
    InsightFace-based implementation of the face detector.

    Attributes:
        model: InsightFace model instance for face analysis

    Performance Characteristics:
        - Detection time: ~50ms per face
        - Memory usage: ~1-2GB
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize InsightFace model.

        Raises:
            ModelLoadError: If the model cannot be downloaded or prepared
        """
        self._settings = settings or default_settings
        try:
            self.model = FaceAnalysis(
                name=self._settings.MODEL_NAME,
                root=self._settings.MODEL_CACHE_DIR,
                providers=['CPUExecutionProvider']
            )
            # Detection size affects accuracy significantly
            size = self._settings.DETECTION_SIZE
            self.model.prepare(ctx_id=0, det_size=(size, size))
        except Exception as e:
            logger.error("Failed to load InsightFace model", model=self._settings.MODEL_NAME, error=str(e))
            raise ModelLoadError(f"Failed to load face model {self._settings.MODEL_NAME}: {e}") from e
        logger.info("InsightFace model loaded", model=self._settings.MODEL_NAME)

    def _downscale(self, image: np.ndarray) -> Tuple[np.ndarray, float]:
        """Shrink images above MAX_IMAGE_PIXELS.

        Returns:
            The image to analyse and the factor mapping its pixels back to the original
        """
        height, width = image.shape[:2]
        pixels = width * height
        if pixels <= self._settings.MAX_IMAGE_PIXELS:
            return image, 1.0

        scale = math.sqrt(self._settings.MAX_IMAGE_PIXELS / pixels)
        new_width = int(width * scale)
        new_height = int(height * scale)
        logger.debug(
            "Resizing large image",
            original_size=(width, height),
            new_size=(new_width, new_height)
        )
        resized = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)
        return resized, width / new_width

    def _convert_to_face(self, face_data: InsightFace, factor: float) -> DetectedFace:
        """
        Convert an InsightFace detection result to a DetectedFace.

        Args:
            face_data: Face detection result from InsightFace
            factor: Multiplier mapping analysed pixels back to original pixels

        Returns:
            DetectedFace with a pixel bounding box in the original image
        """
        x1, y1, x2, y2 = (float(v) for v in face_data.bbox)
        box = BoundingBox(x=x1, y=y1, width=max(x2 - x1, 0.0), height=max(y2 - y1, 0.0))
        return DetectedFace(
            box=box.scaled(factor),
            embedding=face_data.normed_embedding,
            confidence=float(face_data.det_score),
        )

    async def detect(
        self,
        image: np.ndarray,
        max_faces: Optional[int] = None,
    ) -> List[DetectedFace]:
        """Detect faces and extract embeddings without blocking the event loop."""
        analysed, factor = self._downscale(image)
        faces = await asyncio.to_thread(
            self.model.get, analysed, max_num=0 if max_faces is None else max_faces
        )

        logger.debug(
            "Face detection results",
            faces_found=len(faces) if faces else 0,
            max_faces=max_faces
        )

        return [
            self._convert_to_face(face, factor)
            for face in faces
            if face.embedding is not None
        ]
