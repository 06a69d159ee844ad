"""Value objects package."""
from .indexing import ImageIndexResult, ImageState, IndexProgress, IndexSummary
from .recognition import (
    UNKNOWN_DISTANCE,
    MatchedDetection,
    MatchResult,
    PersonGallery,
    PersonMatches,
    QueryResult,
    QueryStatus,
    StoreCounts,
)

__all__ = [
    "UNKNOWN_DISTANCE",
    "ImageIndexResult",
    "ImageState",
    "IndexProgress",
    "IndexSummary",
    "MatchedDetection",
    "MatchResult",
    "PersonGallery",
    "PersonMatches",
    "QueryResult",
    "QueryStatus",
    "StoreCounts",
]
