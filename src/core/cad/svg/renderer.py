"""
SVG rendering of normalized drawings.

Every entity becomes one SVG primitive inside a root group flipped with
``scale(1,-1)``: drawings are Y-up, SVG is Y-down. Each primitive carries
``data-layer`` so the viewer can toggle layers without re-parsing, and the
layer table is embedded as JSON metadata so cached documents carry it too.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence
from xml.sax.saxutils import escape

from src.core.cad.dxf.blocks import DEFAULT_MAX_DEPTH, BlockResolver, insert_transform
from src.core.cad.dxf.colors import DEFAULT_COLOR_INDEX, resolve_color
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
    Point,
    PointEntity,
    Polyline,
    SolidFace,
    Spline,
    Text,
)
from src.core.cad.svg.bounds import Bounds, BoundsTracker

logger = logging.getLogger(__name__)

PADDING_RATIO = 0.05
STROKE_WIDTH = "0.5"
POINT_RADIUS = 0.5
TEXT_WIDTH_FACTOR = 0.6
LAYERS_METADATA_ID = "dwg-layers"

_STYLE = (
    ".dwg-layer { stroke-linecap: round; stroke-linejoin: round; }\n"
    "            .dwg-text { font-family: 'Arial', sans-serif; }"
)


def fmt(value: float) -> str:
    """Compact, stable number formatting for SVG attributes."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def xml_attr(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def _points_attr(points: Iterable[Point]) -> str:
    return " ".join(f"{fmt(x)},{fmt(y)}" for x, y in points)


def arc_span(start_angle: float, end_angle: float) -> float:
    """Counter-clockwise span in degrees, normalized to (0, 360]."""
    span = (end_angle - start_angle) % 360.0
    return 360.0 if span == 0.0 else span


def large_arc_flag(start_angle: float, end_angle: float) -> int:
    return 1 if arc_span(start_angle, end_angle) > 180.0 else 0


@dataclass
class RenderResult:
    svg: str
    layers: List[Dict[str, Any]] = field(default_factory=list)
    bounds: Optional[Bounds] = None
    element_count: int = 0


class SvgRenderer:
    """
    Converts normalized entities into a complete SVG document.

    Dispatch is by entity class; inserts render their block recursively
    inside a transformed ``<g>`` while the bounds tracker measures the nested
    coordinates through the same transform.
    """

    def __init__(
        self,
        layers: Optional[Mapping[str, Layer]] = None,
        blocks: Optional[Dict[str, Block]] = None,
        max_block_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._layers: Mapping[str, Layer] = layers or {}
        self._resolver = BlockResolver(blocks or {}, max_block_depth)
        self._bounds = BoundsTracker()
        self._used_layers: Dict[str, None] = {}
        self._count = 0
        self._emitters: Dict[type, Callable[[Any, FrozenSet[str]], Optional[str]]] = {
            Line: self._line,
            Circle: self._circle,
            Arc: self._arc,
            Ellipse: self._ellipse,
            Polyline: self._polyline,
            Spline: self._spline,
            Text: self._text,
            PointEntity: self._point,
            Insert: self._insert,
            SolidFace: self._solid,
            Leader: self._leader,
            Attribute: self._attribute,
        }

    def render(self, entities: Sequence[NormalizedEntity]) -> RenderResult:
        elements = self._render_all(entities, frozenset())
        if not elements:
            logger.debug("Drawing produced no SVG elements")

        bounds = self._bounds.bounds()
        layers = self._layer_list()
        svg = build_svg_document(elements, bounds, layers)
        return RenderResult(svg=svg, layers=layers, bounds=bounds, element_count=self._count)

    # ------------------------------------------------------------------

    def _render_all(self, entities: Iterable[NormalizedEntity], chain: FrozenSet[str]) -> List[str]:
        elements: List[str] = []
        for entity in entities:
            emitter = self._emitters.get(type(entity))
            if emitter is None:
                logger.debug(f"No SVG emitter for {type(entity).__name__}")
                continue
            element = emitter(entity, chain)
            if element:
                elements.append(element)
        return elements

    def _layer_list(self) -> List[Dict[str, Any]]:
        layers = [layer.to_dict() for layer in self._layers.values()]
        for name in self._used_layers:
            if name not in self._layers:
                layers.append(Layer(name=name, color_index=DEFAULT_COLOR_INDEX).to_dict())
        return layers

    def _attrs(self, entity: NormalizedEntity, *, stroke: bool = True) -> str:
        """Shared color/class/layer attributes; counts the primitive."""
        self._used_layers.setdefault(entity.layer, None)
        self._count += 1
        color = resolve_color(entity.color_index, entity.layer, self._layers)
        paint = (
            f'stroke="{color}" stroke-width="{STROKE_WIDTH}"' if stroke else f'fill="{color}"'
        )
        return f'{paint} class="dwg-layer" data-layer="{xml_attr(entity.layer)}"'

    def _text_element(
        self,
        entity: NormalizedEntity,
        position: Point,
        height: float,
        rotation: float,
        content: str,
    ) -> str:
        x, y = position
        self._bounds.include(x, y)
        # Approximate text extent along its baseline
        rad = math.radians(rotation)
        width = len(content) * height * TEXT_WIDTH_FACTOR
        self._bounds.include(
            x + width * math.cos(rad) - height * math.sin(rad),
            y + width * math.sin(rad) + height * math.cos(rad),
        )

        self._used_layers.setdefault(entity.layer, None)
        self._count += 1
        color = resolve_color(entity.color_index, entity.layer, self._layers)
        # Inverse flip keeps glyphs upright under the root scale(1,-1)
        transform = "scale(1,-1)"
        if rotation:
            transform += f" rotate({fmt(-rotation)} {fmt(x)} {fmt(-y)})"
        return (
            f'<text x="{fmt(x)}" y="{fmt(-y)}" font-size="{fmt(height)}" fill="{color}" '
            f'class="dwg-text dwg-layer" data-layer="{xml_attr(entity.layer)}" '
            f'transform="{transform}">{escape(content)}</text>'
        )

    # ------------------------------------------------------------------
    # Emitters
    # ------------------------------------------------------------------

    def _line(self, entity: Line, chain: FrozenSet[str]) -> str:
        (x1, y1), (x2, y2) = entity.p1, entity.p2
        self._bounds.include(x1, y1)
        self._bounds.include(x2, y2)
        return (
            f'<line x1="{fmt(x1)}" y1="{fmt(y1)}" x2="{fmt(x2)}" y2="{fmt(y2)}" '
            f"{self._attrs(entity)}/>"
        )

    def _circle(self, entity: Circle, chain: FrozenSet[str]) -> str:
        cx, cy = entity.center
        r = entity.radius
        self._bounds.include_box(cx, cy, r, r)
        return (
            f'<circle cx="{fmt(cx)}" cy="{fmt(cy)}" r="{fmt(r)}" fill="none" '
            f"{self._attrs(entity)}/>"
        )

    def _arc(self, entity: Arc, chain: FrozenSet[str]) -> str:
        cx, cy = entity.center
        r = entity.radius
        span = arc_span(entity.start_angle, entity.end_angle)
        start = math.radians(entity.start_angle)
        end = start + math.radians(span)

        def at(angle: float) -> Point:
            return (cx + r * math.cos(angle), cy + r * math.sin(angle))

        x1, y1 = at(start)
        x2, y2 = at(end)
        self._bounds.include(x1, y1)
        self._bounds.include(x2, y2)
        # Axis extremes swept by the arc
        for quadrant in range(4):
            angle = quadrant * 90.0
            if (angle - entity.start_angle) % 360.0 <= span:
                self._bounds.include(*at(math.radians(angle)))

        if span >= 360.0:
            # A single arc command cannot close on itself; draw two halves
            mx, my = at(start + math.pi)
            d = (
                f"M {fmt(x1)} {fmt(y1)} A {fmt(r)} {fmt(r)} 0 0 1 {fmt(mx)} {fmt(my)} "
                f"A {fmt(r)} {fmt(r)} 0 0 1 {fmt(x1)} {fmt(y1)}"
            )
        else:
            large = large_arc_flag(entity.start_angle, entity.end_angle)
            d = (
                f"M {fmt(x1)} {fmt(y1)} A {fmt(r)} {fmt(r)} 0 {large} 1 {fmt(x2)} {fmt(y2)}"
            )
        return f'<path d="{d}" fill="none" {self._attrs(entity)}/>'

    def _ellipse(self, entity: Ellipse, chain: FrozenSet[str]) -> str:
        cx, cy = entity.center
        mx, my = entity.major_axis
        rx = math.hypot(mx, my)
        ry = rx * entity.axis_ratio
        angle = math.atan2(my, mx)
        half_w = math.hypot(rx * math.cos(angle), ry * math.sin(angle))
        half_h = math.hypot(rx * math.sin(angle), ry * math.cos(angle))
        self._bounds.include_box(cx, cy, half_w, half_h)
        rotate = ""
        if angle:
            rotate = f' transform="rotate({fmt(math.degrees(angle))} {fmt(cx)} {fmt(cy)})"'
        return (
            f'<ellipse cx="{fmt(cx)}" cy="{fmt(cy)}" rx="{fmt(rx)}" ry="{fmt(ry)}"{rotate} '
            f'fill="none" {self._attrs(entity)}/>'
        )

    def _polyline(self, entity: Polyline, chain: FrozenSet[str]) -> Optional[str]:
        if not entity.vertices:
            return None
        self._bounds.include_points(entity.vertices)
        tag = "polygon" if entity.closed else "polyline"
        return (
            f'<{tag} points="{_points_attr(entity.vertices)}" fill="none" '
            f"{self._attrs(entity)}/>"
        )

    def _spline(self, entity: Spline, chain: FrozenSet[str]) -> Optional[str]:
        # Control polygon only; not a true B-spline evaluation
        if len(entity.control_points) < 2:
            return None
        self._bounds.include_points(entity.control_points)
        return (
            f'<polyline points="{_points_attr(entity.control_points)}" fill="none" '
            f"{self._attrs(entity)}/>"
        )

    def _text(self, entity: Text, chain: FrozenSet[str]) -> Optional[str]:
        if not entity.content.strip():
            return None
        return self._text_element(
            entity, entity.position, entity.height, entity.rotation, entity.content
        )

    def _attribute(self, entity: Attribute, chain: FrozenSet[str]) -> Optional[str]:
        if not entity.content:
            return None
        return self._text_element(entity, entity.position, entity.height, 0.0, entity.content)

    def _point(self, entity: PointEntity, chain: FrozenSet[str]) -> str:
        x, y = entity.position
        self._bounds.include(x, y)
        return (
            f'<circle cx="{fmt(x)}" cy="{fmt(y)}" r="{fmt(POINT_RADIUS)}" '
            f"{self._attrs(entity, stroke=False)}/>"
        )

    def _solid(self, entity: SolidFace, chain: FrozenSet[str]) -> Optional[str]:
        if len(entity.corners) < 3:
            return None
        self._bounds.include_points(entity.corners)
        color = resolve_color(entity.color_index, entity.layer, self._layers)
        return (
            f'<polygon points="{_points_attr(entity.corners)}" fill="{color}" '
            f'fill-opacity="0.3" {self._attrs(entity)}/>'
        )

    def _leader(self, entity: Leader, chain: FrozenSet[str]) -> Optional[str]:
        if len(entity.vertices) < 2:
            return None
        self._bounds.include_points(entity.vertices)
        return (
            f'<polyline points="{_points_attr(entity.vertices)}" fill="none" '
            f"{self._attrs(entity)}/>"
        )

    def _insert(self, entity: Insert, chain: FrozenSet[str]) -> Optional[str]:
        block = self._resolver.enter(entity, chain)
        if block is None:
            return None

        with self._bounds.push(insert_transform(entity, block)):
            children = self._render_all(block.entities, chain | {block.name})
        if not children:
            return None

        self._used_layers.setdefault(entity.layer, None)
        x, y = entity.position
        parts = [f"translate({fmt(x)},{fmt(y)})"]
        if entity.rotation:
            parts.append(f"rotate({fmt(entity.rotation)})")
        if entity.scale_x != 1.0 or entity.scale_y != 1.0:
            parts.append(f"scale({fmt(entity.scale_x)},{fmt(entity.scale_y)})")
        bx, by = block.base_point
        if bx or by:
            parts.append(f"translate({fmt(-bx)},{fmt(-by)})")
        return (
            f'<g transform="{" ".join(parts)}" class="dwg-insert" '
            f'data-block="{xml_attr(block.name)}" data-layer="{xml_attr(entity.layer)}">'
            f'{"".join(children)}</g>'
        )


def layers_metadata(layers: List[Dict[str, Any]]) -> str:
    # Escape '>' inside JSON strings so the CDATA section cannot be terminated early
    payload = json.dumps(layers, ensure_ascii=False, separators=(",", ":")).replace(">", "\\u003e")
    return f'<metadata id="{LAYERS_METADATA_ID}"><![CDATA[{payload}]]></metadata>'


def build_svg_document(elements: List[str], bounds: Bounds, layers: List[Dict[str, Any]]) -> str:
    """Compose the full document; the viewBox is negated vertically to match the flip."""
    view = bounds.padded(PADDING_RATIO)
    view_box = f"{fmt(view.min_x)} {fmt(-view.max_y)} {fmt(view.width)} {fmt(view.height)}"
    body = "\n        ".join(elements)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<svg xmlns="http://www.w3.org/2000/svg"\n'
        f'     viewBox="{view_box}"\n'
        '     width="100%"\n'
        '     height="100%"\n'
        '     preserveAspectRatio="xMidYMid meet"\n'
        '     class="dwg-viewer-svg">\n'
        f"    {layers_metadata(layers)}\n"
        "    <defs>\n"
        "        <style>\n"
        f"            {_STYLE}\n"
        "        </style>\n"
        "    </defs>\n"
        '    <g transform="scale(1,-1)" class="dwg-content">\n'
        f"        {body}\n"
        "    </g>\n"
        "</svg>\n"
    )


def render(
    entities: Sequence[NormalizedEntity],
    layers: Optional[Mapping[str, Layer]] = None,
    blocks: Optional[Dict[str, Block]] = None,
) -> RenderResult:
    """Render entities to an SVG document plus its layer list."""
    return SvgRenderer(layers, blocks).render(entities)


def render_drawing(drawing: ExtractedDrawing) -> RenderResult:
    return render(drawing.entities, drawing.layers, drawing.blocks)
