"""
Preview orchestration.

Provides:
- Render cache and age-based cleanup
- DWG/DXF to SVG conversion service
"""

from src.core.cad.preview.cache import SvgCache, layers_from_svg
from src.core.cad.preview.service import (
    ConversionResult,
    PreviewConfig,
    PreviewService,
    get_preview_service,
    reset_preview_service,
)

__all__ = [
    "SvgCache",
    "layers_from_svg",
    "ConversionResult",
    "PreviewConfig",
    "PreviewService",
    "get_preview_service",
    "reset_preview_service",
]
