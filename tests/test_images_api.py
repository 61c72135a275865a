from __future__ import annotations

import io
import stat
from pathlib import Path
from typing import Optional

import yaml
from fastapi.testclient import TestClient
from PIL import Image

from imagestage.app import ServerConfig, create_app
from imagestage.models.config import HelperConfig


def _create_client(tmp_path: Path, helper: Optional[HelperConfig] = None, **kwargs) -> TestClient:
    config = ServerConfig(image_dir=tmp_path, helper=helper, **kwargs)
    app = create_app(config)
    return TestClient(app)


def _create_image(path: Path, size=(800, 600), color: str = "red", fmt: str = "PNG") -> Path:
    image = Image.new("RGB", size, color=color)
    image.save(path, format=fmt)
    return path


def test_health_counts_images(tmp_path: Path) -> None:
    _create_image(tmp_path / "alpha.png")
    (tmp_path / "readme.txt").write_text("skip me", encoding="utf-8")

    response = _create_client(tmp_path).get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "image_count": 1}


def test_list_images_returns_metadata(tmp_path: Path) -> None:
    _create_image(tmp_path / "bravo.jpg", fmt="JPEG")
    _create_image(tmp_path / "alpha.png", size=(40, 30))

    response = _create_client(tmp_path).get("/list")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    names = [item["name"] for item in payload["items"]]
    assert names == ["alpha.png", "bravo.jpg"]
    first = payload["items"][0]
    assert (first["width"], first["height"], first["format"]) == (40, 30, "png")
    assert first["url"] == "/image/alpha.png"


def test_image_endpoint_streams_transformed_image(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    client = _create_client(tmp_path)

    response = client.get(
        "/image/photo.png",
        params={"mode": "fit", "width": 400, "height": 400, "background": "00ff00", "format": "jpeg"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.format == "JPEG"
        assert image.size == (400, 400)


def test_image_endpoint_defaults_to_source_format(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.gif", fmt="GIF")

    response = _create_client(tmp_path).get("/image/photo.gif", params={"rotate": 90})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/gif"
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.size == (600, 800)


def test_image_info_reports_metadata(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")

    response = _create_client(tmp_path).get("/image/photo.png/info")

    assert response.status_code == 200
    payload = response.json()
    assert payload["metadata"]["width"] == 800
    assert payload["metadata"]["mime"] == "image/png"
    assert (payload["width"], payload["height"]) == (800, 600)


def test_missing_image_returns_404(tmp_path: Path) -> None:
    response = _create_client(tmp_path).get("/image/missing.png")

    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "Image not found"}


def test_corrupt_image_returns_415(tmp_path: Path) -> None:
    (tmp_path / "broken.png").write_bytes(b"not-an-image")

    response = _create_client(tmp_path).get("/image/broken.png")

    assert response.status_code == 415
    assert response.json()["ok"] is False


def test_incomplete_parameters_return_422(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    client = _create_client(tmp_path)

    response = client.get("/image/photo.png", params={"mode": "fit", "width": 400})
    assert response.status_code == 422
    assert "height" in response.json()["error"]

    response = client.get("/image/photo.png", params={"background": "nothex"})
    assert response.status_code == 422


def test_non_finite_and_oversized_parameters_return_422(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    client = _create_client(tmp_path)

    for params in (
        {"mode": "width", "width": "inf"},
        {"mode": "scale", "percent": "nan"},
        {"rotate": "inf"},
        {"mode": "scale", "percent": 1e12},
    ):
        response = client.get("/image/photo.png", params=params)
        assert response.status_code == 422, params

    response = client.post(
        "/transform",
        json={"file": "photo.png", "steps": [{"mode": "scale", "percent": 1e12}], "output": "huge.png"},
    )
    assert response.status_code == 422
    assert not (tmp_path / "huge.png").exists()


def test_silent_mode_omits_error_messages(tmp_path: Path) -> None:
    client = _create_client(tmp_path, helper=HelperConfig(on_error="silent"))

    response = client.get("/image/missing.png")

    assert response.status_code == 404
    assert response.json() == {"ok": False}


def test_transform_saves_output_with_file_mode(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    output_dir = tmp_path / "out"
    client = _create_client(tmp_path, helper=HelperConfig(file_mode=0o644), output_dir=output_dir)

    response = client.post(
        "/transform",
        json={
            "file": "photo.png",
            "steps": [{"mode": "long_edge", "length": 100}, {"rotate": 90}],
            "output": "thumb.jpg",
            "quality": 85,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload == {
        "ok": True,
        "file": "thumb.jpg",
        "url": "/output/thumb.jpg",
        "width": 75,
        "height": 100,
        "format": "jpeg",
    }
    saved = output_dir / "thumb.jpg"
    assert stat.S_IMODE(saved.stat().st_mode) == 0o644

    response = client.get(payload["url"])
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"


def test_transform_appends_extension_for_requested_format(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    client = _create_client(tmp_path)

    response = client.post("/transform", json={"file": "photo.png", "output": "small", "format": "gif"})

    assert response.status_code == 200
    assert response.json()["file"] == "small.gif"
    assert (tmp_path / "small.gif").exists()


def test_transform_failure_writes_nothing(tmp_path: Path) -> None:
    _create_image(tmp_path / "photo.png")
    client = _create_client(tmp_path)

    response = client.post(
        "/transform",
        json={"file": "photo.png", "steps": [{"mode": "scale"}], "output": "never.png"},
    )

    assert response.status_code == 422
    assert not (tmp_path / "never.png").exists()


def test_config_update_is_persisted(tmp_path: Path) -> None:
    config_path = tmp_path / "imagestage.yaml"
    client = _create_client(tmp_path, config_path=config_path)

    assert client.get("/config").json()["config"]["file_mode"] == 0o755

    response = client.put("/config", json={"file_mode": "0600", "on_error": "silent"})

    assert response.status_code == 200
    assert response.json()["config"]["file_mode"] == 0o600
    stored = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert stored["file_mode"] == 0o600
    assert stored["on_error"] == "silent"
    assert client.get("/image/missing.png").json() == {"ok": False}


def test_config_update_rejects_invalid_values(tmp_path: Path) -> None:
    client = _create_client(tmp_path)

    response = client.put("/config", json={"background": "red"})

    assert response.status_code == 422
    assert client.get("/config").json()["config"]["background"] == "#000000"
