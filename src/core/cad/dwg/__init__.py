"""
DWG support through external converters.

Provides:
- ODA File Converter integration
- LibreDWG dwg2dxf fallback
"""

from src.core.cad.dwg.converter import (
    ConversionStatus,
    ConverterConfig,
    ConverterTool,
    DWGConverter,
    DXFVersion,
    DxfConversionResult,
    ToolAttempt,
)

__all__ = [
    "ConversionStatus",
    "ConverterConfig",
    "ConverterTool",
    "DWGConverter",
    "DXFVersion",
    "DxfConversionResult",
    "ToolAttempt",
]
