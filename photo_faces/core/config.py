"""Configuration settings for the photo-faces identity service."""
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        DATABASE_URL: SQLAlchemy async URL of the embedding store
        MATCH_THRESHOLD: Maximum Euclidean distance (exclusive) accepted as the same person
        MIN_FACE_CONFIDENCE: Detections scoring below this are ignored
        RESCAN_FACELESS_IMAGES: Leave images without faces unrecorded so later runs re-examine them
        APPEND_MATCHED_DESCRIPTORS: Store the descriptor of every accepted match as an extra reference
        RESET_STORE_ON_STARTUP: Drop and recreate the schema when the container initializes
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        env_nested_delimiter="__"
    )

    # Core Settings
    PROJECT_NAME: str = "Photo Faces"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # Embedding store
    DATABASE_URL: str = "sqlite+aiosqlite:///./faces.db"
    DATABASE_ECHO: bool = False
    RESET_STORE_ON_STARTUP: bool = False

    # Identity matching
    MATCH_THRESHOLD: float = 0.55
    APPEND_MATCHED_DESCRIPTORS: bool = False

    # Indexing
    IMAGE_EXTENSIONS: str = ".jpg,.jpeg,.png"
    RESCAN_FACELESS_IMAGES: bool = False

    # Face detection settings
    MIN_FACE_CONFIDENCE: float = 0.3
    MAX_FACES_PER_IMAGE: Optional[int] = None
    MODEL_NAME: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    DETECTION_SIZE: int = 640
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @field_validator("MATCH_THRESHOLD")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Reject thresholds that could never accept a match."""
        if v <= 0:
            raise ValueError("MATCH_THRESHOLD must be positive")
        return v

    @property
    def image_extensions(self) -> List[str]:
        """Get normalized list of indexable file extensions."""
        extensions = []
        for ext in self.IMAGE_EXTENSIONS.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            extensions.append(ext if ext.startswith(".") else f".{ext}")
        return extensions


settings = Settings()
