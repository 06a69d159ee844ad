"""Tests for image decoding."""
import cv2
import numpy as np
import pytest

from photo_faces.core.exceptions import InvalidImageError
from photo_faces.core.utils.image import OpenCVImageLoader, bytes_to_numpy_array


def encode_png(width=6, height=4):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 2] = 255
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


def test_decode_png():
    image = bytes_to_numpy_array(encode_png())

    assert image.shape == (4, 6, 3)
    assert image[0, 0, 2] == 255


@pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
def test_decode_rejects_invalid_bytes(payload):
    with pytest.raises(InvalidImageError):
        bytes_to_numpy_array(payload)


def test_loader_reads_files(tmp_path):
    path = tmp_path / "red.png"
    path.write_bytes(encode_png(width=3, height=2))

    image = OpenCVImageLoader().load(path)

    assert image.shape == (2, 3, 3)


def test_loader_missing_file(tmp_path):
    with pytest.raises(InvalidImageError):
        OpenCVImageLoader().load(tmp_path / "missing.jpg")
