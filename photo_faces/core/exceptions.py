"""Custom exceptions for the photo-faces service."""
from typing import Optional


class FaceIndexError(Exception):
    """Base exception for identity indexing operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face index error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class StorageError(FaceIndexError):
    """Raised when the embedding store fails to read or write."""
    pass


class ReferentialError(StorageError):
    """Raised when a row references a person or image that does not exist."""
    pass


class EmbeddingDimensionError(FaceIndexError):
    """Raised when a descriptor length differs from the store's dimensionality."""
    pass


class InvalidImageError(FaceIndexError):
    """Raised when the provided image is invalid or cannot be decoded."""
    pass


class DetectionFailure(FaceIndexError):
    """Raised when face detection fails for a single image."""
    pass


class InvalidFolderError(FaceIndexError):
    """Raised when the folder to index does not exist or is not a directory."""
    pass


class ModelLoadError(FaceIndexError):
    """Raised when the face recognition model fails to load."""
    pass


class ServiceNotInitializedError(FaceIndexError):
    """Raised when a service is requested before the container is initialized."""
    pass
