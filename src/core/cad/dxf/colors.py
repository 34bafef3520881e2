"""
ACI (AutoCAD Color Index) resolution.

Only a reduced palette is mapped (indices 0-10); every other index renders
black. The table mirrors what the upload viewer has always shown and is
known to be incomplete relative to the 256-entry ACI table.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

BYBLOCK = 0
BYLAYER = 256
DEFAULT_COLOR_INDEX = 7
FALLBACK_HEX = "#000000"

ACI_PALETTE = {
    0: "#000000",  # ByBlock
    1: "#FF0000",  # Red
    2: "#FFFF00",  # Yellow
    3: "#00FF00",  # Green
    4: "#00FFFF",  # Cyan
    5: "#0000FF",  # Blue
    6: "#FF00FF",  # Magenta
    7: "#FFFFFF",  # White/Black (viewer theme decides)
    8: "#808080",  # Gray
    9: "#C0C0C0",  # Light gray
    10: "#FF0000",
}


def aci_to_hex(color_index: Optional[int]) -> str:
    """Map an ACI index to ``#RRGGBB``. Total: unmapped indices are black."""
    if color_index is None:
        return FALLBACK_HEX
    return ACI_PALETTE.get(int(color_index), FALLBACK_HEX)


def resolve_color(
    color_index: Optional[int],
    layer_name: str,
    layers: Mapping[str, Any],
) -> str:
    """
    Resolve the display color of an entity.

    Order: explicit entity index (anything but BYLAYER), then the layer's
    color, then the default index.

    Args:
        color_index: Entity color index, ``None`` or ``BYLAYER`` for "by layer"
        layer_name: Entity layer name
        layers: Layer table keyed by name; values expose ``color_index``

    Returns:
        Hex color string
    """
    if color_index is not None and color_index != BYLAYER:
        return aci_to_hex(color_index)

    layer = layers.get(layer_name)
    if layer is not None:
        return aci_to_hex(layer.color_index)

    return aci_to_hex(DEFAULT_COLOR_INDEX)
