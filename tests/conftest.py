import io
import os

import pytest


# List of environment variables that may be modified by tests
_ENV_VARS_TO_ISOLATE = [
    "LOG_LEVEL",
    "DWG_UPLOAD_DIR",
    "DWG_CACHE_DIR",
    "DWG_STAGING_DIR",
    "ODA_FILE_CONVERTER",
    "DWG2DXF_PATH",
    "DWG_CONVERTER_TIMEOUT_S",
    "DWG_OUTPUT_VERSION",
    "DWG_CACHE_MAX_AGE_DAYS",
]


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate environment variables between tests."""
    backup = {k: os.environ.get(k) for k in _ENV_VARS_TO_ISOLATE}
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture(autouse=True)
def settings_isolation():
    """Drop cached settings and the process-wide preview service between tests."""
    from src.core.cad.preview.service import reset_preview_service
    from src.core.config import reset_settings

    reset_settings()
    reset_preview_service()
    try:
        yield
    finally:
        reset_settings()
        reset_preview_service()


def dxf_text(doc) -> str:
    """Serialize an ezdxf document to DXF text."""
    buf = io.StringIO()
    doc.write(buf)
    return buf.getvalue()


@pytest.fixture
def write_dxf(tmp_path):
    """Write an ezdxf document under tmp_path and return the file path."""

    def _write(doc, name: str = "drawing.dxf"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dxf_text(doc), encoding="utf-8")
        return path

    return _write
