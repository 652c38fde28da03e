import pytest
from fastapi.testclient import TestClient

from conftest import FakeReplicateClient, decode_data_url, make_image, make_settings
from photo_style_api.app.api import transform as transform_api
from photo_style_api.app.main import app
from photo_style_api.app.schemas.request import StyleType
from photo_style_api.app.services import batch_service
from photo_style_api.app.services.artifact_fetcher import to_data_url
from photo_style_api.app.workflows.style_prompts import EDIT_STYLE_PROMPTS


def photos(*names):
    return [("photos", (name, name.encode(), "image/jpeg")) for name in names]


@pytest.fixture
def use_service(monkeypatch):
    """替换全局批处理服务"""
    def install(behaviours=None, **settings):
        client = FakeReplicateClient(behaviours or {})
        service = batch_service.BatchTransformService(settings=make_settings(**settings), client=client)
        monkeypatch.setattr(batch_service, "batch_transform_service", service)
        return client
    return install


@pytest.fixture
def api():
    return TestClient(app)


def test_transform_success_payload(api, use_service):
    png = make_image()
    use_service({
        b"a.jpg": [{"status": "succeeded", "output": [to_data_url(png)]}],
        b"b.jpg": [{"status": "failed", "error": "nope"}],
    })

    resp = api.post("/api/transform", files=photos("a.jpg", "b.jpg"), data={"style": "pencil", "intensity": "0.7"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["total_count"] == 2
    assert body["dropped_count"] == 1
    assert body["dropped"][0]["filename"] == "b.jpg"
    assert [image["filename"] for image in body["images"]] == ["a.jpg.png"]
    assert decode_data_url(body["images"][0]["dataUrl"]) == png


def test_missing_photos_is_bad_request(api, use_service):
    client = use_service()

    resp = api.post("/api/transform", data={"style": "pencil"})

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "PRECONDITION_FAILED"
    assert resp.json()["success"] is False
    assert client.predictions.created == []


def test_missing_token_is_configuration_error(api, monkeypatch):
    service = batch_service.BatchTransformService(settings=make_settings(REPLICATE_API_TOKEN=None))
    monkeypatch.setattr(batch_service, "batch_transform_service", service)

    resp = api.post("/api/transform", files=photos("a.jpg"))

    assert resp.status_code == 500
    assert resp.json()["error_code"] == "CONFIGURATION_ERROR"


def test_all_failed_is_bad_gateway(api, use_service):
    use_service({b"a.jpg": [{"status": "failed", "error": "boom"}]})

    resp = api.post("/api/transform", files=photos("a.jpg"))

    assert resp.status_code == 502
    body = resp.json()
    assert body["error_code"] == "BATCH_FAILED"
    assert body["details"]["failures"][0]["message"] == "boom"


def test_oversized_file_is_rejected(api, use_service, monkeypatch):
    client = use_service({b"a.jpg": [{"status": "succeeded", "output": []}]})
    monkeypatch.setattr(transform_api.settings, "MAX_FILE_SIZE", 3)

    resp = api.post("/api/transform", files=photos("a.jpg"))

    assert resp.status_code == 413
    assert resp.json()["details"]["filename"] == "a.jpg"
    assert client.predictions.created == []


def test_lenient_form_values(api, use_service):
    client = use_service({b"a.jpg": [{"status": "succeeded", "output": [to_data_url(make_image())]}]})

    resp = api.post("/api/transform", files=photos("a.jpg"), data={"style": "charcoal", "intensity": "lots"})

    assert resp.status_code == 200
    assert client.predictions.created[0]["input"]["prompt"] == EDIT_STYLE_PROMPTS[StyleType.PHOTO_REAL]


def test_out_of_range_intensity_is_clamped(api, use_service):
    client = use_service(
        {b"a.jpg": [{"status": "succeeded", "output": [to_data_url(make_image())]}]},
        REPLICATE_MODEL_VERSION="v1",
    )

    resp = api.post("/api/transform", files=photos("a.jpg"), data={"intensity": "2"})

    assert resp.status_code == 200
    submitted = client.predictions.created[0]["input"]
    assert submitted["strength"] == pytest.approx(0.8)
    assert submitted["guidance_scale"] == 10


def test_local_backend(api, monkeypatch):
    service = batch_service.BatchTransformService(settings=make_settings(REPLICATE_API_TOKEN=None))
    monkeypatch.setattr(batch_service, "batch_transform_service", service)

    resp = api.post(
        "/api/transform",
        files=[("photos", ("p.png", make_image(), "image/png"))],
        data={"backend": "local", "style": "watercolor"},
    )

    assert resp.status_code == 200
    assert resp.json()["images"][0]["filename"] == "p.png.png"


def test_unexpected_error_is_internal_server_error(monkeypatch):
    class Exploding:
        async def transform_batch(self, request):
            raise RuntimeError("kaboom")

    monkeypatch.setattr(batch_service, "batch_transform_service", Exploding())

    resp = TestClient(app, raise_server_exceptions=False).post("/api/transform", files=photos("a.jpg"))

    assert resp.status_code == 500
    assert resp.json()["error_code"] == "INTERNAL_SERVER_ERROR"


def test_health(api, use_service):
    use_service()

    resp = api.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["replicate_configured"] is True
    assert isinstance(body["ts"], int)


def test_root(api):
    assert api.get("/").json()["status"] == "running"
