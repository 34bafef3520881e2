"""SVG rendering of normalized drawings."""

from src.core.cad.svg.bounds import Bounds, BoundsTracker, DEFAULT_BOUNDS
from src.core.cad.svg.placeholder import placeholder_layers, placeholder_svg
from src.core.cad.svg.renderer import RenderResult, SvgRenderer, render, render_drawing

__all__ = [
    "Bounds",
    "BoundsTracker",
    "DEFAULT_BOUNDS",
    "RenderResult",
    "SvgRenderer",
    "placeholder_layers",
    "placeholder_svg",
    "render",
    "render_drawing",
]
