"""Tests for the HTTP API."""
import json

import pytest
from httpx import ASGITransport, AsyncClient

from photo_faces.core.container import ServiceContainer
from photo_faces.main import create_app
from tests.conftest import near, unit


@pytest.fixture
async def client(settings, container):
    app = create_app(settings, container)
    # ASGITransport does not run the lifespan, so attach the initialized container directly
    app.state.container = container
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_index_streams_progress(client, photos):
    photos.add("a.jpg", unit(0))
    photos.add("b.jpg", near(unit(0), 0.05))

    response = await client.post("/api/v1/faces/index", json={"folder": str(photos.root)})

    assert response.status_code == 200
    events = [json.loads(line) for line in response.text.splitlines() if line]
    assert len(events) == 3
    assert [e["result"]["state"] for e in events[:2]] == ["persisted", "persisted"]
    assert events[-1]["completed"] is True
    assert events[-1]["summary"]["new_persons"] == 1


@pytest.mark.asyncio
async def test_index_missing_folder(client, tmp_path):
    response = await client.post("/api/v1/faces/index", json={"folder": str(tmp_path / "missing")})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_query_upload(client, container, photos, probes):
    photos.add("a.jpg", unit(0))
    async for _ in container.index_folder(photos.root):
        pass
    probe = probes.add("probe.jpg", near(unit(0), 0.1))

    response = await client.post(
        "/api/v1/faces/query",
        files={"image": ("probe.jpg", probe.read_bytes(), "image/jpeg")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "matched"
    assert [m["image_path"] for m in body["matches"]] == [str((photos.root / "a.jpg").resolve())]
    assert body["matches"][0]["box"] == {"x": 10.0, "y": 20.0, "width": 30.0, "height": 40.0}


@pytest.mark.asyncio
async def test_query_before_indexing(client, probes):
    probe = probes.add("probe.jpg", unit(0))

    response = await client.post(
        "/api/v1/faces/query",
        files={"image": ("probe.jpg", probe.read_bytes(), "image/jpeg")},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "nothing_indexed"
    assert response.json()["matches"] == []


@pytest.mark.asyncio
async def test_query_rejects_invalid_images(client, container, photos):
    photos.add("a.jpg", unit(0))
    async for _ in container.index_folder(photos.root):
        pass

    empty = await client.post("/api/v1/faces/query", files={"image": ("empty.jpg", b"", "image/jpeg")})
    corrupt = await client.post(
        "/api/v1/faces/query",
        files={"image": ("bad.jpg", b"corrupt data", "image/jpeg")},
    )

    assert empty.status_code == 400
    assert corrupt.status_code == 400


@pytest.mark.asyncio
async def test_persons_and_reset(client, container, photos):
    photos.add("a.jpg", unit(0), unit(1))
    async for _ in container.index_folder(photos.root):
        pass

    gallery = await client.get("/api/v1/faces/persons")
    assert gallery.status_code == 200
    assert len(gallery.json()["persons"]) == 2
    assert gallery.json()["counts"] == {"persons": 2, "images": 1, "detections": 2}

    reset = await client.post("/api/v1/faces/reset")
    assert reset.status_code == 200
    assert reset.json() == {"status": "reset"}

    gallery = await client.get("/api/v1/faces/persons")
    assert gallery.json()["persons"] == []


@pytest.mark.asyncio
async def test_requests_before_startup_are_rejected(settings):
    app = create_app(settings, ServiceContainer(settings))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/faces/persons")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_query_with_wrong_embedding_size(client, container, photos, probes):
    photos.add("a.jpg", unit(0))
    async for _ in container.index_folder(photos.root):
        pass
    probe = probes.add("probe.jpg", [1.0, 0.0, 0.0])

    response = await client.post(
        "/api/v1/faces/query",
        files={"image": ("probe.jpg", probe.read_bytes(), "image/jpeg")},
    )

    assert response.status_code == 422
    assert "dimensions" in response.json()["detail"]
