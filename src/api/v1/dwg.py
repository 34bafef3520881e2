"""DWG/DXF preview endpoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import anyio
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from src.api.dependencies import get_api_key
from src.core.cad.preview.service import ConversionResult, PreviewService, get_preview_service
from src.core.config import Settings, get_settings
from src.core.errors import ErrorCode, PreviewError

logger = logging.getLogger(__name__)
router = APIRouter()

_HTTP_STATUS = {
    ErrorCode.SOURCE_NOT_FOUND: 404,
    ErrorCode.UNSUPPORTED_FORMAT: 400,
    ErrorCode.INPUT_ERROR: 400,
    ErrorCode.PARSE_CORRUPTED: 422,
}


class PreviewRequest(BaseModel):
    document_id: str = Field(..., min_length=1, max_length=256, description="Cache key for the document")
    file_path: str = Field(..., min_length=1, description="Source path relative to the upload directory")


class LayerInfo(BaseModel):
    name: str
    color: str
    visible: bool = True
    lineType: str = "CONTINUOUS"


class PreviewResponse(BaseModel):
    document_id: str
    svg: str
    layers: List[LayerInfo]
    source: str = Field(..., description="cache_hit/rendered/placeholder")
    error: Optional[str] = Field(None, description="Converter diagnostic for placeholder previews")


class LayersResponse(BaseModel):
    document_id: str
    layers: List[LayerInfo]


class CacheCleanupRequest(BaseModel):
    max_age_days: Optional[float] = Field(
        None, ge=0, description="Remove previews older than this many days (defaults to DWG_CACHE_MAX_AGE_DAYS)"
    )


class CacheCleanupResponse(BaseModel):
    message: str
    files_removed: int


def _http_error(error: PreviewError) -> HTTPException:
    return HTTPException(status_code=_HTTP_STATUS.get(error.code, 500), detail=error.to_dict())


def resolve_source_path(file_path: str, upload_dir: str) -> Path:
    """Resolve a client-supplied path inside the upload directory."""
    rel = Path(str(file_path))
    if rel.is_absolute() or ".." in rel.parts:
        raise PreviewError("file_path must be relative to the upload directory", path=file_path)
    base = Path(upload_dir).resolve()
    full = (base / rel).resolve()
    try:
        full.relative_to(base)
    except ValueError as e:
        raise PreviewError("file_path escapes the upload directory", path=file_path) from e
    return full


async def _convert(
    payload: PreviewRequest,
    service: PreviewService,
    settings: Settings,
) -> ConversionResult:
    try:
        source = resolve_source_path(payload.file_path, settings.DWG_UPLOAD_DIR)
        # Blocking: file I/O, ezdxf parsing and converter subprocesses
        return await anyio.to_thread.run_sync(service.convert, source, payload.document_id)
    except PreviewError as e:
        raise _http_error(e) from e


@router.post("/render", response_model=PreviewResponse)
async def render_preview(
    payload: PreviewRequest,
    service: PreviewService = Depends(get_preview_service),
    settings: Settings = Depends(get_settings),
    api_key: str = Depends(get_api_key),
):
    """Render a DWG/DXF document to SVG, serving the cached copy when present."""
    result = await _convert(payload, service, settings)
    return PreviewResponse(
        document_id=payload.document_id,
        svg=result.svg or "",
        layers=[LayerInfo(**layer) for layer in result.layers],
        source=result.source,
        error=result.error,
    )


@router.post("/svg")
async def render_preview_svg(
    payload: PreviewRequest,
    service: PreviewService = Depends(get_preview_service),
    settings: Settings = Depends(get_settings),
    api_key: str = Depends(get_api_key),
) -> Response:
    """Same as ``/render`` but returns the SVG document itself."""
    result = await _convert(payload, service, settings)
    return Response(
        content=(result.svg or "").encode("utf-8"),
        media_type="image/svg+xml",
        headers={"X-Preview-Source": result.source},
    )


@router.post("/layers", response_model=LayersResponse)
async def get_layers(
    payload: PreviewRequest,
    service: PreviewService = Depends(get_preview_service),
    settings: Settings = Depends(get_settings),
    api_key: str = Depends(get_api_key),
):
    """Layer list of a document (renders it first when not cached)."""
    result = await _convert(payload, service, settings)
    return LayersResponse(
        document_id=payload.document_id,
        layers=[LayerInfo(**layer) for layer in result.layers],
    )


@router.post("/cache/cleanup", response_model=CacheCleanupResponse)
async def cleanup_cache(
    payload: Optional[CacheCleanupRequest] = None,
    service: PreviewService = Depends(get_preview_service),
    settings: Settings = Depends(get_settings),
    api_key: str = Depends(get_api_key),
):
    """Remove cached previews older than ``max_age_days``."""
    max_age_days = settings.DWG_CACHE_MAX_AGE_DAYS
    if payload is not None and payload.max_age_days is not None:
        max_age_days = payload.max_age_days
    outcome = await anyio.to_thread.run_sync(service.cleanup_cache, max_age_days)
    removed = outcome["files_removed"]
    logger.info(f"Preview cache cleanup removed {removed} files", extra={"count": removed})
    return CacheCleanupResponse(
        message=f"Removed {removed} cached previews older than {max_age_days:g} days",
        files_removed=removed,
    )


@router.get("/info")
async def preview_info(
    service: PreviewService = Depends(get_preview_service),
    api_key: str = Depends(get_api_key),
):
    """Converter availability and cache statistics."""
    return await anyio.to_thread.run_sync(service.get_info)
