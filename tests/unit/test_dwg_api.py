"""Tests for the DWG preview HTTP endpoints."""

from __future__ import annotations

import io
import os
import time

import pytest
from fastapi.testclient import TestClient

ezdxf = pytest.importorskip("ezdxf")

from src.core.cad.dwg.converter import ConverterConfig, DWGConverter  # noqa: E402
from src.core.cad.preview.service import PreviewConfig, PreviewService, get_preview_service  # noqa: E402
from src.core.config import Settings, get_settings  # noqa: E402
from src.main import app  # noqa: E402


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    doc = ezdxf.new()
    doc.modelspace().add_line((0, 0), (10, 10), dxfattribs={"layer": "0"})
    buf = io.StringIO()
    doc.write(buf)
    (path / "plan.dxf").write_text(buf.getvalue(), encoding="utf-8")
    (path / "legacy.dwg").write_bytes(b"AC1032\x00")
    (path / "broken.dxf").write_text("garbage\nmore garbage\n", encoding="utf-8")
    (path / "notes.txt").write_text("hello")
    return path


@pytest.fixture
def service(tmp_path, monkeypatch):
    monkeypatch.setattr(DWGConverter, "is_available", False)
    return PreviewService(
        PreviewConfig(
            cache_root=str(tmp_path / "cache"),
            staging_root=str(tmp_path / "staging"),
            converter=ConverterConfig(),
        )
    )


@pytest.fixture
def client(service, upload_dir):
    app.dependency_overrides[get_preview_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: Settings(DWG_UPLOAD_DIR=str(upload_dir))
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_render_dxf(client):
    resp = client.post("/api/v1/dwg/render", json={"document_id": "plan", "file_path": "plan.dxf"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["document_id"] == "plan"
    assert data["source"] == "rendered"
    assert "<line " in data["svg"]
    layer0 = next(layer for layer in data["layers"] if layer["name"] == "0")
    assert layer0["color"] == "#FFFFFF"
    assert layer0["visible"] is True


def test_render_twice_hits_cache(client):
    body = {"document_id": "plan", "file_path": "plan.dxf"}
    first = client.post("/api/v1/dwg/render", json=body).json()
    second = client.post("/api/v1/dwg/render", json=body).json()
    assert second["source"] == "cache_hit"
    assert second["svg"] == first["svg"]


def test_render_dwg_without_converter_is_placeholder(client):
    resp = client.post("/api/v1/dwg/render", json={"document_id": "legacy", "file_path": "legacy.dwg"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "placeholder"
    assert [layer["name"] for layer in data["layers"]] == ["0"]
    assert data["error"]


def test_svg_endpoint_returns_document(client):
    resp = client.post("/api/v1/dwg/svg", json={"document_id": "plan", "file_path": "plan.dxf"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("image/svg+xml")
    assert resp.headers["x-preview-source"] == "rendered"
    assert resp.text.startswith("<?xml")


def test_layers_endpoint(client):
    resp = client.post("/api/v1/dwg/layers", json={"document_id": "plan", "file_path": "plan.dxf"})
    assert resp.status_code == 200
    assert resp.json()["layers"][0]["name"] == "0"


@pytest.mark.parametrize(
    "file_path,status,code",
    [
        ("missing.dxf", 404, "SOURCE_NOT_FOUND"),
        ("notes.txt", 400, "UNSUPPORTED_FORMAT"),
        ("broken.dxf", 422, "PARSE_CORRUPTED"),
        ("../outside.dxf", 400, "INPUT_ERROR"),
        ("/etc/passwd.dxf", 400, "INPUT_ERROR"),
    ],
)
def test_render_errors(client, file_path, status, code):
    resp = client.post("/api/v1/dwg/render", json={"document_id": "x", "file_path": file_path})
    assert resp.status_code == status
    detail = resp.json()["detail"]
    assert detail["code"] == code
    assert detail["message"]


def test_render_validates_body(client):
    resp = client.post("/api/v1/dwg/render", json={"document_id": "", "file_path": "plan.dxf"})
    assert resp.status_code == 422


def test_cache_cleanup(client, service):
    client.post("/api/v1/dwg/render", json={"document_id": "plan", "file_path": "plan.dxf"})
    stamp = time.time() - 30 * 86400
    os.utime(service.cache.path_for("plan"), (stamp, stamp))

    resp = client.post("/api/v1/dwg/cache/cleanup", json={"max_age_days": 7})
    assert resp.status_code == 200
    assert resp.json()["files_removed"] == 1
    assert "1" in resp.json()["message"]

    again = client.post("/api/v1/dwg/cache/cleanup", json={"max_age_days": 7})
    assert again.json()["files_removed"] == 0


def test_cache_cleanup_default_age(client):
    resp = client.post("/api/v1/dwg/cache/cleanup")
    assert resp.status_code == 200
    assert resp.json()["files_removed"] == 0


def test_cache_cleanup_rejects_negative_age(client):
    resp = client.post("/api/v1/dwg/cache/cleanup", json={"max_age_days": -1})
    assert resp.status_code == 422


def test_info(client):
    client.post("/api/v1/dwg/render", json={"document_id": "plan", "file_path": "plan.dxf"})
    resp = client.get("/api/v1/dwg/info")
    assert resp.status_code == 200
    data = resp.json()
    assert data["converter"]["is_available"] is False
    assert data["cache"]["file_count"] == 1
    assert ".dwg" in data["supported_extensions"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
