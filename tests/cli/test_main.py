"""Tests for the command line interface."""
import json

import pytest

from photo_faces.cli import main as cli
from photo_faces.core.container import ServiceContainer
from tests.conftest import near, unit


@pytest.fixture
def run_cli(tmp_path, detector, image_loader, monkeypatch):
    """Run the CLI against a temporary store with the fake detector."""
    monkeypatch.setattr(cli, "setup_logging", lambda settings: None)
    monkeypatch.setattr(
        cli,
        "ServiceContainer",
        lambda settings: ServiceContainer(settings, detector=detector, image_loader=image_loader),
    )
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

    def run(*args):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--database-url", database_url, *args])
        return exc_info.value.code

    return run


def test_index_then_query(run_cli, photos, probes, capsys):
    photos.add("a.jpg", unit(0))
    photos.add("b.jpg", near(unit(0), 0.05))
    probe = probes.add("probe.jpg", near(unit(0), 0.1))

    assert run_cli("index", str(photos.root)) == 0
    assert "Indexing complete: 2 processed" in capsys.readouterr().out

    assert run_cli("query", str(probe)) == 0
    out = capsys.readouterr().out
    assert "Found match for Person ID: 1" in out
    assert str((photos.root / "b.jpg").resolve()) in out


def test_query_json_output(run_cli, photos, probes, capsys):
    photos.add("a.jpg", unit(0))
    probe = probes.add("probe.jpg", unit(3))
    run_cli("index", str(photos.root))
    capsys.readouterr()

    assert run_cli("query", str(probe), "--json") == 0
    assert json.loads(capsys.readouterr().out)["status"] == "no_confident_match"


def test_query_without_match_exits_nonzero(run_cli, probes, capsys):
    probe = probes.add("probe.jpg", unit(0))

    assert run_cli("query", str(probe)) == 1
    assert "No faces indexed yet" in capsys.readouterr().out


def test_index_reports_failures(run_cli, photos, capsys):
    photos.add_failing("a.jpg")
    photos.add("b.jpg", unit(0))

    assert run_cli("index", str(photos.root)) == 2
    assert "1 failed" in capsys.readouterr().out


def test_index_missing_folder_exits_with_error(run_cli, tmp_path):
    assert run_cli("index", str(tmp_path / "missing")) == 1


def test_gallery_and_reset(run_cli, photos, capsys):
    photos.add("a.jpg", unit(0), unit(1))
    run_cli("index", str(photos.root))
    capsys.readouterr()

    assert run_cli("gallery") == 0
    out = capsys.readouterr().out
    assert "Person 1: 1 detections" in out
    assert "Person 2: 1 detections" in out

    assert run_cli("reset", "--yes") == 0
    run_cli("gallery")
    assert "No persons indexed yet." in capsys.readouterr().out


def test_reset_requires_confirmation(run_cli):
    assert run_cli("reset") == 2
