"""
DXF geometry extraction.

Provides:
- Normalized entity model
- ezdxf-based geometry extraction
- Block reference resolution
- ACI color resolution
"""

from src.core.cad.dxf.entities import (
    Arc,
    Attribute,
    Block,
    Circle,
    Ellipse,
    ExtractedDrawing,
    Insert,
    Layer,
    Leader,
    Line,
    NormalizedEntity,
    PointEntity,
    Polyline,
    SolidFace,
    Spline,
    Text,
)
from src.core.cad.dxf.extractor import (
    GeometryExtractor,
    SUPPORTED_ENTITY_TYPES,
    extract_geometry,
)
from src.core.cad.dxf.blocks import (
    BlockResolver,
    insert_transform,
)
from src.core.cad.dxf.colors import (
    ACI_PALETTE,
    BYLAYER,
    aci_to_hex,
    resolve_color,
)

__all__ = [
    # Entities
    "Arc",
    "Attribute",
    "Block",
    "Circle",
    "Ellipse",
    "ExtractedDrawing",
    "Insert",
    "Layer",
    "Leader",
    "Line",
    "NormalizedEntity",
    "PointEntity",
    "Polyline",
    "SolidFace",
    "Spline",
    "Text",
    # Extraction
    "GeometryExtractor",
    "SUPPORTED_ENTITY_TYPES",
    "extract_geometry",
    # Blocks
    "BlockResolver",
    "insert_transform",
    # Colors
    "ACI_PALETTE",
    "BYLAYER",
    "aci_to_hex",
    "resolve_color",
]
