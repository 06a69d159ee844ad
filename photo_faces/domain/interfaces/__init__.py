"""Collaborator interfaces package."""
from .imaging import ImageLoader
from .recognition import FaceDetector

__all__ = ["FaceDetector", "ImageLoader"]
