"""Shared fixtures: fake detector and image loader, settings, store and container."""
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest
import structlog

from photo_faces.core.config import Settings
from photo_faces.core.container import ServiceContainer
from photo_faces.core.exceptions import InvalidImageError
from photo_faces.domain.entities.face import BoundingBox, DetectedFace
from photo_faces.domain.interfaces.imaging import ImageLoader
from photo_faces.domain.interfaces.recognition import FaceDetector
from photo_faces.infrastructure.database.session import create_engine
from photo_faces.infrastructure.database.store import EmbeddingStore

DIM = 8


def unit(axis: int) -> np.ndarray:
    """Unit vector along ``axis``; distinct axes are sqrt(2) apart."""
    vector = np.zeros(DIM, dtype=np.float32)
    vector[axis] = 1.0
    return vector


def near(base: np.ndarray, distance: float) -> np.ndarray:
    """Vector exactly ``distance`` away from ``base`` (base must be zero on the last axis)."""
    return base + distance * unit(DIM - 1)


def face(embedding: np.ndarray, confidence: float = 0.99, box: Optional[BoundingBox] = None) -> DetectedFace:
    return DetectedFace(
        box=box or BoundingBox(x=10, y=20, width=30, height=40),
        embedding=embedding,
        confidence=confidence,
    )


class FakeImageLoader(ImageLoader):
    """Turns file bytes into a uint8 array so the fake detector can recognise them."""

    def decode(self, image_bytes: bytes) -> np.ndarray:
        if not image_bytes or image_bytes.startswith(b"corrupt"):
            raise InvalidImageError("Failed to decode image bytes")
        return np.frombuffer(image_bytes, np.uint8).copy()


class FakeDetector(FaceDetector):
    """Returns pre-registered faces for an image, keyed by the image's bytes."""

    def __init__(self) -> None:
        self.faces: Dict[bytes, List[DetectedFace]] = {}
        self.failing: set = set()
        self.calls: List[bytes] = []

    def register(self, content: bytes, faces: Sequence[DetectedFace]) -> None:
        self.faces[content] = list(faces)

    async def detect(self, image: np.ndarray, max_faces: Optional[int] = None) -> List[DetectedFace]:
        key = image.tobytes()
        self.calls.append(key)
        if key in self.failing:
            raise RuntimeError("model crashed")
        faces = self.faces.get(key, [])
        return faces if max_faces is None else faces[:max_faces]


class PhotoLibrary:
    """Writes placeholder image files and registers the faces they contain."""

    def __init__(self, root: Path, detector: FakeDetector) -> None:
        self.root = root
        self.detector = detector
        self.root.mkdir(parents=True, exist_ok=True)

    def add(self, name: str, *embeddings: np.ndarray, confidence: float = 0.99) -> Path:
        path = self.root / name
        content = str(path).encode()
        path.write_bytes(content)
        self.detector.register(content, [face(e, confidence=confidence) for e in embeddings])
        return path

    def add_failing(self, name: str) -> Path:
        path = self.root / name
        content = str(path).encode()
        path.write_bytes(content)
        self.detector.failing.add(content)
        return path

    def add_corrupt(self, name: str) -> Path:
        path = self.root / name
        path.write_bytes(b"corrupt " + name.encode())
        return path

    def calls_for(self, path: Path) -> int:
        return self.detector.calls.count(str(path).encode())


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'faces.db'}",
        "ENVIRONMENT": "test",
        "MATCH_THRESHOLD": 0.55,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True, scope="session")
def structured_logging():
    """Route structlog through stdlib logging so pytest captures it and stdout stays clean."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def image_loader() -> FakeImageLoader:
    return FakeImageLoader()


@pytest.fixture
def photos(tmp_path: Path, detector: FakeDetector) -> PhotoLibrary:
    return PhotoLibrary(tmp_path / "photos", detector)


@pytest.fixture
def probes(tmp_path: Path, detector: FakeDetector) -> PhotoLibrary:
    return PhotoLibrary(tmp_path / "probes", detector)


@pytest.fixture
async def store(settings: Settings):
    engine = create_engine(settings)
    store = EmbeddingStore(engine)
    await store.create_schema()
    yield store
    await engine.dispose()


@pytest.fixture
async def container(settings: Settings, detector: FakeDetector, image_loader: FakeImageLoader):
    container = ServiceContainer(settings, detector=detector, image_loader=image_loader)
    await container.initialize()
    yield container
    await container.cleanup()
