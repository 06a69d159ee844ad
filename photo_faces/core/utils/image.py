"""
Image decoding utilities.
"""
import cv2
import numpy as np

from photo_faces.core.exceptions import InvalidImageError
from photo_faces.domain.interfaces.imaging import ImageLoader


def bytes_to_numpy_array(image_bytes: bytes, flags: int = cv2.IMREAD_COLOR) -> np.ndarray:
    """Convert image bytes to a numpy array.

    Args:
        image_bytes: Raw image bytes
        flags: OpenCV imread flags (default: COLOR)

    Returns:
        numpy.ndarray: Image as a numpy array

    Raises:
        InvalidImageError: If the image cannot be decoded
    """
    np_array = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(np_array, flags) if np_array.size else None

    if img is None:
        raise InvalidImageError("Failed to decode image bytes")

    return img


class OpenCVImageLoader(ImageLoader):
    """Decodes JPEG and PNG images into BGR arrays with OpenCV."""

    def decode(self, image_bytes: bytes) -> np.ndarray:
        return bytes_to_numpy_array(image_bytes)
