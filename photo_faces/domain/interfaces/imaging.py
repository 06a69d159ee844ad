"""Image decoding interface."""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

import numpy as np

from photo_faces.core.exceptions import InvalidImageError


class ImageLoader(ABC):
    """Interface for turning image files or bytes into pixel arrays."""

    @abstractmethod
    def decode(self, image_bytes: bytes) -> np.ndarray:
        """
        Decode raw image bytes.

        Raises:
            InvalidImageError: If the bytes are not a decodable image
        """
        pass

    def load(self, path: Union[str, Path]) -> np.ndarray:
        """
        Read and decode an image file.

        Raises:
            InvalidImageError: If the file cannot be read or decoded
        """
        try:
            image_bytes = Path(path).read_bytes()
        except OSError as e:
            raise InvalidImageError(f"Cannot read image {path}: {e}", details={"path": str(path)}) from e
        return self.decode(image_bytes)
