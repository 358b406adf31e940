import pytest
from conftest import FakeEngineFactory, png_bytes
from fastapi.testclient import TestClient

from converter.conversion.service import ConversionService, get_conversion_service
from converter.engine import EngineManager
from converter.main import app


@pytest.fixture
def api():
    factory = FakeEngineFactory()
    svc = ConversionService(engines=EngineManager(factory=factory), max_workers=2)
    app.dependency_overrides[get_conversion_service] = lambda: svc
    client = TestClient(app)
    yield client, svc, factory
    app.dependency_overrides.clear()
    svc.shutdown()


def test_health_reports_engine_state(api):
    client, _, _ = api
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "engine": "uninitialized"}


def test_limits(api):
    client, svc, _ = api
    resp = client.get("/api/limits")
    assert resp.json()["max_file_size_bytes"] == svc.max_file_size


def test_formats_for_input(api):
    client, _, _ = api
    all_formats = client.get("/api/formats").json()
    assert "mp4" in all_formats["video"] and "mp3" in all_formats["audio"]

    resp = client.get("/api/formats", params={"mime_type": "video/mp4", "filename": "clip.mp4"})
    targets = resp.json()["targets"]
    assert "mp4" not in targets
    assert "gif" in targets and "mp3" in targets


def test_convert_image_returns_bytes(api):
    client, _, factory = api
    resp = client.post(
        "/api/convert",
        params={"target": "jpg"},
        files={"file": ("photo.png", png_bytes(), "image/png")},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("image/jpg")
    assert "photo.jpg" in resp.headers["content-disposition"]
    assert resp.content[:2] == b"\xff\xd8"
    assert factory.created == []


def test_convert_video_through_engine(api):
    client, _, factory = api
    resp = client.post(
        "/api/convert",
        params={"target": "webm"},
        files={"file": ("clip.mp4", b"\x00" * 64, "video/mp4")},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("video/webm")
    assert len(factory.engine.runs) == 1


def test_convert_too_large(api):
    client, svc, _ = api
    svc.max_file_size = 10
    resp = client.post(
        "/api/convert",
        params={"target": "webm"},
        files={"file": ("clip.mp4", b"\x00" * 11, "video/mp4")},
    )
    assert resp.status_code == 413


def test_convert_unsupported_pair(api):
    client, _, _ = api
    resp = client.post(
        "/api/convert",
        params={"target": "png"},
        files={"file": ("song.mp3", b"ID3", "audio/mpeg")},
    )
    assert resp.status_code == 400


def test_convert_engine_failure(api):
    client, _, factory = api
    factory.fail = "Invalid data found when processing input"
    resp = client.post(
        "/api/convert",
        params={"target": "webm"},
        files={"file": ("clip.mp4", b"junk", "video/mp4")},
    )
    assert resp.status_code == 500
    assert "Invalid data" in resp.json()["detail"]


def test_cancel_endpoint(api):
    client, svc, _ = api
    resp = client.post("/api/cancel")
    assert resp.status_code == 200
    assert resp.json() == {"status": "cancelled"}
    assert svc.signal.is_cancelled()
