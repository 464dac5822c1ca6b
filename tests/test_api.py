import base64

import cloudinary.exceptions
import pytest
from fastapi.testclient import TestClient

from app.config.settings import settings
from app.delivery.api import mockups
from app.domain.errors import FetchFailed
from app.main import app
from tests.conftest import StubFetcher, _png, _solid, _write_template

GENERATE = f"{settings.API_V1_STR}/mockups/generate"
PLACEMENT = {"scale": 0.5, "print_area_width": 180, "print_area_height": 240}


@pytest.fixture
def auth():
    return (settings.BASIC_AUTH_USERNAME, settings.BASIC_AUTH_PASSWORD)


@pytest.fixture
def client(tmp_path, monkeypatch):
    _write_template(tmp_path, "white_male_front")
    _write_template(tmp_path, "black_female_back", placement="back", color="black", blend_mode="multiply")
    monkeypatch.setattr(settings, "TEMPLATES_DIR", str(tmp_path))
    with TestClient(app) as c:
        c.app.state.compositor.fetcher = StubFetcher(_png(_solid(30, 40, (255, 0, 0, 255))))
        yield c


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["templates_loaded"] == 2


def test_list_templates(client):
    body = client.get(f"{settings.API_V1_STR}/templates").json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [t["id"] for t in body["data"]] == ["black_female_back", "white_male_front"]
    assert body["data"][0]["blend_mode"] == "multiply"


def test_get_template(client):
    body = client.get(f"{settings.API_V1_STR}/templates/white_male_front").json()
    assert body["data"]["id"] == "white_male_front"
    assert body["data"]["product_type"] == "tshirt"
    assert body["data"]["dimensions"] == {"width": 400, "height": 500}


def test_unknown_template_returns_error_envelope(client):
    response = client.get(f"{settings.API_V1_STR}/templates/nope")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {
            "code": "TEMPLATE_NOT_FOUND",
            "message": "Template 'nope' does not exist",
            "details": {"template_id": "nope"},
        },
    }


def test_generate_requires_auth(client):
    payload = {"design_url": "https://example.com/d.png", "template_id": "white_male_front"}
    assert client.post(GENERATE, json=payload).status_code == 401
    assert client.post(GENERATE, json=payload, auth=("admin", "wrong-password")).status_code == 401


def test_generate_returns_png_data_url(client, auth):
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "placement": PLACEMENT,
    }
    response = client.post(GENERATE, json=payload, auth=auth)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["metadata"]["template_used"] == "white_male_front"
    assert body["metadata"]["dimensions"] == {"width": 400, "height": 500}
    assert body["mockup_url"].startswith("data:image/png;base64,")
    png = base64.b64decode(body["mockup_url"].split(",", 1)[1])
    assert png.startswith(b"\x89PNG")
    assert client.app.state.compositor.fetcher.calls == ["https://example.com/d.png"]


def test_generate_uses_default_placement_when_omitted(client, auth):
    payload = {"design_url": "https://example.com/d.png", "template_id": "white_male_front"}
    assert client.post(GENERATE, json=payload, auth=auth).status_code == 200


def test_generate_rejects_bad_scale(client, auth):
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "placement": {"scale": 1.5},
    }
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_SCALE"
    assert error["details"] == {"scale": 1.5}
    assert client.app.state.compositor.fetcher.calls == []


def test_generate_rejects_out_of_bounds_placement(client, auth):
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "placement": {"scale": 0.5, "offset_y": 1000},
    }
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "OUT_OF_BOUNDS_VERTICAL"
    assert error["details"] == {"top": 1600, "bottom": 2800, "print_height": 2400}


def test_generate_with_unknown_template(client, auth):
    payload = {"design_url": "https://example.com/d.png", "template_id": "missing"}
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TEMPLATE_NOT_FOUND"


def test_generate_reports_fetch_failure(client, auth):
    client.app.state.compositor.fetcher = StubFetcher(
        error=FetchFailed("https://example.com/d.png", "HTTP 404", status=404)
    )
    payload = {"design_url": "https://example.com/d.png", "template_id": "white_male_front"}
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "FETCH_FAILED"
    assert error["details"]["status"] == 404


def test_generate_reports_undecodable_design(client, auth):
    client.app.state.compositor.fetcher = StubFetcher(b"<html>not an image</html>")
    payload = {"design_url": "https://example.com/d.png", "template_id": "white_male_front"}
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "DECODE_FAILED"


def test_upload_without_cloudinary_is_rejected(client, auth, monkeypatch):
    monkeypatch.setattr(settings, "CLOUDINARY_CLOUD_NAME", None)
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "options": {"upload": True},
    }
    assert client.post(GENERATE, json=payload, auth=auth).status_code == 400


def test_reload_picks_up_new_templates(client, auth, tmp_path):
    reload_url = f"{settings.API_V1_STR}/templates/reload"
    assert client.post(reload_url).status_code == 401

    _write_template(tmp_path, "heather_unisex_front", category="Heavy Hooded Sweatshirt")
    response = client.post(reload_url, auth=auth)
    assert response.status_code == 200
    assert response.json() == {"success": True, "count": 3}
    assert client.get("/health").json()["templates_loaded"] == 3
    body = client.get(f"{settings.API_V1_STR}/templates/heather_unisex_front").json()
    assert body["data"]["category_slug"] == "hoodies"


def test_generate_rejects_design_that_collapses_to_nothing(client, auth):
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "placement": {"scale": 0.1, "print_area_width": 4, "print_area_height": 4},
    }
    response = client.post(GENERATE, json=payload, auth=auth)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "DESIGN_TOO_SMALL"
    assert error["details"] == {"width": 0, "height": 0}
    assert client.app.state.compositor.fetcher.calls == []


@pytest.mark.parametrize("area", [{"print_area_width": 0}, {"print_area_height": -240}, {"print_area_width": 10 ** 6}])
def test_generate_rejects_unusable_print_area_sizes(client, auth, area):
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "placement": {"scale": 0.5, **area},
    }
    assert client.post(GENERATE, json=payload, auth=auth).status_code == 422


@pytest.fixture
def cloudinary_configured(monkeypatch):
    monkeypatch.setattr(settings, "CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setattr(settings, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(settings, "CLOUDINARY_API_SECRET", "secret")


def test_upload_returns_published_url(client, auth, cloudinary_configured, monkeypatch):
    uploaded = []

    def fake_upload(png_bytes, public_id):
        uploaded.append((png_bytes[:4], public_id))
        return f"https://res.cloudinary.com/demo/image/upload/{public_id}.png"

    monkeypatch.setattr(mockups, "upload_png_bytes", fake_upload)
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "options": {"upload": True},
    }
    response = client.post(GENERATE, json=payload, auth=auth)

    assert response.status_code == 200
    (magic, public_id), = uploaded
    assert magic == b"\x89PNG"
    assert public_id.startswith("white_male_front_")
    assert response.json()["mockup_url"].endswith(f"{public_id}.png")


def test_upload_failure_returns_error_envelope(client, auth, cloudinary_configured, monkeypatch):
    def failing_upload(png_bytes, public_id):
        raise cloudinary.exceptions.Error("Invalid Signature")

    monkeypatch.setattr(mockups, "upload_png_bytes", failing_upload)
    payload = {
        "design_url": "https://example.com/d.png",
        "template_id": "white_male_front",
        "options": {"upload": True},
    }
    response = client.post(GENERATE, json=payload, auth=auth)

    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UPLOAD_FAILED"
    assert "Invalid Signature" in body["error"]["details"]["reason"]
