"""Tests for application settings."""
import pytest
from pydantic import ValidationError

from photo_faces.core.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.MATCH_THRESHOLD == 0.55
    assert settings.MIN_FACE_CONFIDENCE == 0.3
    assert settings.image_extensions == [".jpg", ".jpeg", ".png"]
    assert settings.RESET_STORE_ON_STARTUP is False


def test_image_extensions_are_normalized():
    settings = Settings(_env_file=None, IMAGE_EXTENSIONS="JPG, .Png,,webp")

    assert settings.image_extensions == [".jpg", ".png", ".webp"]


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MATCH_THRESHOLD", "0.4")
    monkeypatch.setenv("RESCAN_FACELESS_IMAGES", "true")

    settings = Settings(_env_file=None)

    assert settings.MATCH_THRESHOLD == 0.4
    assert settings.RESCAN_FACELESS_IMAGES is True


@pytest.mark.parametrize("threshold", [0, -1.0])
def test_threshold_must_be_positive(threshold):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, MATCH_THRESHOLD=threshold)
