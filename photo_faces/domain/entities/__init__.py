"""Domain entities package."""
from .face import BoundingBox, DetectedFace
from .records import DetectionRecord, ImageRecord, PersonRecord

__all__ = ["BoundingBox", "DetectedFace", "DetectionRecord", "ImageRecord", "PersonRecord"]
