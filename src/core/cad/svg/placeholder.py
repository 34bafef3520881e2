"""
Fixed preview shown when a drawing cannot be rendered natively.
"""

from __future__ import annotations

from typing import Any, Dict, List

from src.core.cad.dxf.entities import DEFAULT_LAYER, Layer
from src.core.cad.svg.renderer import layers_metadata

PLACEHOLDER_WIDTH = 800
PLACEHOLDER_HEIGHT = 600


def placeholder_layers() -> List[Dict[str, Any]]:
    """Single default layer reported alongside the placeholder."""
    return [Layer(name=DEFAULT_LAYER, color_index=0).to_dict()]


def placeholder_svg() -> str:
    """
    Build the informational SVG used when no converter could read the file.

    The markup is fixed so cached copies compare byte-identical with fresh ones.
    """
    subtitle = "DWG preview requires a DWG to DXF converter"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<svg xmlns="http://www.w3.org/2000/svg"\n'
        f'     viewBox="0 0 {PLACEHOLDER_WIDTH} {PLACEHOLDER_HEIGHT}"\n'
        '     width="100%"\n'
        '     height="100%"\n'
        '     preserveAspectRatio="xMidYMid meet"\n'
        '     class="dwg-viewer-svg dwg-placeholder">\n'
        f"    {layers_metadata(placeholder_layers())}\n"
        "    <defs>\n"
        '        <pattern id="grid" width="20" height="20" patternUnits="userSpaceOnUse">\n'
        '            <path d="M 20 0 L 0 0 0 20" fill="none" stroke="#e0e0e0" stroke-width="0.5"/>\n'
        "        </pattern>\n"
        "    </defs>\n"
        f'    <rect width="{PLACEHOLDER_WIDTH}" height="{PLACEHOLDER_HEIGHT}" fill="url(#grid)"/>\n'
        '    <rect x="200" y="200" width="400" height="200" fill="#f5f5f5" stroke="#cccccc" '
        'stroke-width="2" rx="10" data-layer="0"/>\n'
        '    <text x="400" y="280" text-anchor="middle" font-family="Arial, sans-serif" '
        'font-size="20" fill="#666666" data-layer="0">Preview unavailable</text>\n'
        '    <text x="400" y="320" text-anchor="middle" font-family="Arial, sans-serif" '
        f'font-size="14" fill="#999999" data-layer="0">{subtitle}</text>'
        "\n"
        "</svg>\n"
    )
