import asyncio
import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from coverforge.app import ServerConfig, create_app


def _create_client(tmp_path: Path) -> TestClient:
    config = ServerConfig(settings_path=tmp_path / "coverforge.yaml", log_path=tmp_path / "coverforge.log")
    app = create_app(config)
    return TestClient(app)


def _png_bytes(color: str = "navy", size=(64, 36)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_config_round_trip(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.get("/config")
    assert response.status_code == 200
    payload = response.json()
    assert payload["version"] == 0
    assert payload["config"]["title"] == "REFAC7.LOGS"
    assert payload["config"]["alignment"] == "bottom-left"

    response = client.patch("/config", json={"title": "NEW\nTITLE", "accent_color": "#22c55e"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["version"] == 1
    assert payload["config"]["title"] == "NEW\nTITLE"
    assert payload["config"]["accent_color"] == "#22c55e"


def test_config_rejects_invalid_values(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.patch("/config", json={"font_family": "Comic Sans Of Doom"})
    assert response.status_code == 422

    response = client.patch("/config", json={"brightness_percent": 900})
    assert response.status_code == 422

    assert client.get("/config").json()["version"] == 0


def test_background_upload_switches_to_image_mode(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.post(
        "/upload/background",
        files={"file": ("desk.png", _png_bytes(), "image/png")},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["ref"].startswith("upload:")

    config = client.get("/config").json()["config"]
    assert config["background_mode"] == "image"
    assert config["background_image_ref"] == payload["ref"]


def test_background_upload_rejects_bad_requests(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.post(
        "/upload/background",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert "Unsupported file type" in response.json()["error"]

    response = client.post("/upload/background", json={"file": "nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "Content-Type must be multipart/form-data"

    response = client.post("/upload/background", files={"other": ("a.png", _png_bytes(), "image/png")})
    assert response.status_code == 400
    assert response.json()["error"] == "No file was provided"

    assert client.get("/config").json()["config"]["background_mode"] == "color"


def test_broken_font_upload_keeps_font_family(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.post(
        "/upload/font",
        files={"file": ("brand.ttf", b"not really a font", "font/ttf")},
    )
    assert response.status_code == 400
    assert response.json()["ok"] is False

    fonts = client.get("/fonts").json()
    assert fonts["registered"] == []
    assert fonts["active"] == "sans-serif"
    assert "monospace" in fonts["presets"]


def test_viewport_and_preview_follow_container_width(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.put("/viewport", json={"width": 640})
    assert response.status_code == 200
    payload = response.json()
    assert payload["scale"] == 0.5
    assert payload["virtual_size"] == [1280, 720]
    assert payload["preview_size"] == [640, 360]

    response = client.get("/preview")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["x-preview-stale"] == "false"
    assert response.headers["x-preview-version"] == "0"
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.size == (640, 360)

    response = client.get("/preview")
    assert response.headers["x-preview-cache"] == "hit"

    response = client.get("/preview", params={"scale": 0.25})
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.size == (320, 180)


def test_export_returns_png_attachment(tmp_path: Path) -> None:
    client = _create_client(tmp_path)
    client.patch("/config", json={"blur_amount": 6})
    client.post("/upload/background", files={"file": ("desk.png", _png_bytes(), "image/png")})
    before = client.get("/config").json()

    response = client.post("/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="REFAC7-COVER-')
    assert disposition.endswith('.png"')
    assert response.headers["x-export-baked"] == "true"
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.size == (1920, 1080)

    after = client.get("/config").json()
    assert after["config"] == before["config"]


def test_health_and_log_file(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["state"] == "online"
    assert payload["version"] == 0

    client.post("/export")
    lines = (tmp_path / "coverforge.log").read_text(encoding="utf-8").splitlines()
    assert any("Exported REFAC7-COVER-" in line for line in lines)


def test_oversized_background_is_rejected_as_undecodable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _create_client(tmp_path)
    # anything above twice this pixel count is refused by Pillow
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 500)

    response = client.post(
        "/upload/background",
        files={"file": ("huge.png", _png_bytes(size=(64, 36)), "image/png")},
    )

    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert response.json()["error"].startswith("Could not decode image")
    assert client.get("/config").json()["config"]["background_mode"] == "color"


def test_unexpected_export_failure_reports_export_failed(tmp_path: Path) -> None:
    client = _create_client(tmp_path)
    client.post("/upload/background", files={"file": ("desk.png", _png_bytes(), "image/png")})
    client.patch("/config", json={"brightness_percent": 70})
    before = client.get("/config").json()["config"]

    async def _exploding_baker(data: bytes, blur: float, brightness: float) -> bytes:
        raise Image.DecompressionBombError("image too large")

    client.app.state.coverforge.exporter._baker = _exploding_baker
    response = client.post("/export")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Export failed"}
    assert client.get("/config").json()["config"] == before
    assert client.get("/health").json()["state"] == "online"


def test_preview_renders_outside_the_event_loop(tmp_path: Path) -> None:
    client = _create_client(tmp_path)
    renderer = client.app.state.coverforge.preview_renderer
    render = renderer.render
    loop_running = []

    def _recording_render(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            loop_running.append(True)
        except RuntimeError:
            loop_running.append(False)
        return render(*args, **kwargs)

    renderer.render = _recording_render
    response = client.get("/preview")

    assert response.status_code == 200
    assert loop_running == [False]
