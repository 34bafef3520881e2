"""
DWG/DXF preview orchestration.

``PreviewService.convert`` is the single entry point: cache lookup, direct
DXF parsing, DWG conversion through external tools, and the placeholder
fallback when no tool can read a DWG.
"""

from __future__ import annotations

import logging
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from src.core.cad.dwg.converter import ConversionStatus, ConverterConfig, DWGConverter, DXFVersion
from src.core.cad.dxf.extractor import GeometryExtractor
from src.core.cad.preview.cache import SvgCache, layers_from_svg
from src.core.cad.svg.placeholder import placeholder_layers, placeholder_svg
from src.core.cad.svg.renderer import render_drawing
from src.core.config import get_settings
from src.core.errors import (
    ErrorCode,
    ParseCorruptedError,
    PreviewError,
    SourceNotFoundError,
    UnsupportedFormatError,
)
from src.utils.metrics import cache_write_failures_total, preview_duration_seconds, preview_requests_total

logger = logging.getLogger(__name__)

DXF_EXTENSIONS = frozenset({".dxf"})
DWG_EXTENSIONS = frozenset({".dwg"})
SUPPORTED_EXTENSIONS = DXF_EXTENSIONS | DWG_EXTENSIONS

_STATUS_ERROR_CODES = {
    ConversionStatus.CONVERTER_NOT_FOUND: ErrorCode.EXTERNAL_TOOL_UNAVAILABLE,
    ConversionStatus.TIMEOUT: ErrorCode.EXTERNAL_TOOL_TIMEOUT,
}


@dataclass
class PreviewConfig:
    """Filesystem roots and converter settings for the preview service."""
    cache_root: str = "uploads/cache/dwg"
    staging_root: str = "uploads/temp"
    converter: ConverterConfig = field(default_factory=ConverterConfig)

    def __post_init__(self) -> None:
        if self.converter.staging_root is None:
            self.converter.staging_root = self.staging_root


@dataclass
class ConversionResult:
    """
    Outcome of a preview request.

    ``source`` is one of ``cache_hit``, ``rendered`` or ``placeholder``. On a
    placeholder result ``error`` carries the converter diagnostic; fatal
    problems are raised as ``PreviewError`` instead.
    """
    success: bool
    svg: Optional[str] = None
    layers: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    source: str = "rendered"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "svg": self.svg,
            "layers": self.layers,
            "error": self.error,
            "source": self.source,
        }


class PreviewService:
    """Produces SVG previews for DWG/DXF documents and owns the preview cache."""

    def __init__(
        self,
        config: Optional[PreviewConfig] = None,
        converter: Optional[DWGConverter] = None,
    ):
        self._config = config or PreviewConfig()
        self._cache = SvgCache(self._config.cache_root)
        self._converter = converter or DWGConverter(self._config.converter)
        self._staging_root = Path(self._config.staging_root)

    @property
    def cache(self) -> SvgCache:
        return self._cache

    @property
    def converter(self) -> DWGConverter:
        return self._converter

    def convert(self, file_path: Union[str, Path], document_id: str) -> ConversionResult:
        """
        Return the SVG preview and layer list for a document.

        Args:
            file_path: Source DWG or DXF file
            document_id: Cache key; the same id is assumed to mean the same content

        Raises:
            UnsupportedFormatError: extension is neither .dwg nor .dxf
            SourceNotFoundError: source file does not exist
            ParseCorruptedError: DXF content is structurally invalid
        """
        started = time.time()
        try:
            result = self._convert(Path(file_path), str(document_id))
        except PreviewError as e:
            preview_requests_total.labels(outcome="error").inc()
            logger.warning(
                f"Preview failed: {e.message}",
                extra={"document_id": document_id, "error_code": e.code.value, "stage": e.stage},
            )
            raise

        elapsed = time.time() - started
        preview_requests_total.labels(outcome=result.source).inc()
        preview_duration_seconds.observe(elapsed)
        logger.info(
            f"Preview {result.source}",
            extra={
                "document_id": document_id,
                "status": result.source,
                "latency_ms": round(elapsed * 1000, 1),
            },
        )
        return result

    def _convert(self, file_path: Path, document_id: str) -> ConversionResult:
        cached = self._cache.get(document_id)
        if cached is not None:
            logger.debug("Preview cache hit", extra={"document_id": document_id, "stage": "cache"})
            return ConversionResult(
                success=True, svg=cached, layers=layers_from_svg(cached), source="cache_hit"
            )

        extension = file_path.suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(
                f"Unsupported file type: {extension or '(none)'}", path=str(file_path)
            )
        if not file_path.is_file():
            raise SourceNotFoundError(f"Source file not found: {file_path.name}", path=str(file_path))

        if extension in DXF_EXTENSIONS:
            svg, layers = self._render_dxf(file_path)
            result = ConversionResult(success=True, svg=svg, layers=layers, source="rendered")
        else:
            result = self._convert_dwg(file_path, document_id)

        self._store(document_id, result.svg)
        return result

    def _render_dxf(self, dxf_path: Path) -> Tuple[str, List[Dict[str, Any]]]:
        drawing = GeometryExtractor().extract_file(dxf_path)
        rendered = render_drawing(drawing)
        return rendered.svg, rendered.layers

    def _convert_dwg(self, dwg_path: Path, document_id: str) -> ConversionResult:
        self._staging_root.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=str(self._staging_root), prefix="dwg_job_") as job_dir:
            conversion = self._converter.convert(dwg_path, job_dir)
            error_code = _STATUS_ERROR_CODES.get(conversion.status, ErrorCode.EXTERNAL_TOOL_FAILED)
            if conversion.success and conversion.output_path:
                try:
                    svg, layers = self._render_dxf(Path(conversion.output_path))
                    return ConversionResult(success=True, svg=svg, layers=layers, source="rendered")
                except ParseCorruptedError as e:
                    reason = f"Converted DXF unreadable: {e.message}"
            else:
                reason = f"{conversion.status.value}: {conversion.error_message}"

        logger.warning(
            f"Native DWG preview unavailable, using placeholder ({reason})",
            extra={
                "document_id": document_id,
                "stage": "convert",
                "error_code": error_code.value,
            },
        )
        return ConversionResult(
            success=True,
            svg=placeholder_svg(),
            layers=placeholder_layers(),
            error=reason,
            source="placeholder",
        )

    def _store(self, document_id: str, svg: Optional[str]) -> None:
        if svg is None:
            return
        try:
            self._cache.put(document_id, svg)
        except OSError as e:
            cache_write_failures_total.inc()
            logger.error(
                f"Failed to cache preview: {e}",
                extra={
                    "document_id": document_id,
                    "stage": "cache",
                    "error_code": ErrorCode.CACHE_WRITE_FAILED.value,
                },
            )

    def cleanup_cache(self, max_age_days: float = 7) -> Dict[str, int]:
        """Remove cached previews older than ``max_age_days``."""
        return {"files_removed": self._cache.cleanup(max_age_days)}

    def get_info(self) -> Dict[str, Any]:
        return {
            "converter": self._converter.get_info(),
            "cache": self._cache.get_stats(),
            "staging_root": str(self._staging_root),
            "supported_extensions": sorted(SUPPORTED_EXTENSIONS),
        }


_service: Optional[PreviewService] = None
_service_lock = threading.Lock()


def get_preview_service() -> PreviewService:
    """Get the process-wide preview service, built from settings on first use."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                settings = get_settings()
                _service = PreviewService(
                    PreviewConfig(
                        cache_root=settings.DWG_CACHE_DIR,
                        staging_root=settings.DWG_STAGING_DIR,
                        converter=ConverterConfig(
                            oda_path=settings.ODA_FILE_CONVERTER,
                            dwg2dxf_path=settings.DWG2DXF_PATH,
                            output_version=DXFVersion(settings.DWG_OUTPUT_VERSION),
                            timeout=settings.DWG_CONVERTER_TIMEOUT_S,
                        ),
                    )
                )
    return _service


def reset_preview_service() -> None:
    """Drop the process-wide service (for tests)."""
    global _service
    with _service_lock:
        _service = None
