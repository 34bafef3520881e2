"""
Geometry extraction from DXF documents.

ezdxf handles group-code framing and section/table/block scoping; this module
walks the resulting entities once and maps each supported DXF type onto a
normalized entity. Unsupported or malformed entities are counted and dropped.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from src.core.cad.dxf.entities import (
    DEFAULT_LAYER,
    DEFAULT_LINETYPE,
    DEFAULT_TEXT_HEIGHT,
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
from src.utils.dxf_io import read_dxf_document_from_text, read_dxf_text
from src.utils.metrics import entities_skipped_total

logger = logging.getLogger(__name__)

DIMENSION_TEXT_HEIGHT = 2.0


def _xy(value: Any) -> Optional[Point]:
    """Convert an ezdxf Vec3/tuple to a 2D float tuple."""
    if value is None:
        return None
    try:
        return (float(value[0]), float(value[1]))
    except (TypeError, IndexError, ValueError):
        return None


def _dxf_value(entity: Any, name: str) -> Any:
    try:
        return entity.dxf.get(name)
    except Exception:  # noqa: BLE001 - unsupported attribute for this entity type
        return None


def _vertices(entity: Any) -> List[Point]:
    """Shared vertex array of an entity, when it has one."""
    raw = getattr(entity, "vertices", None)
    if raw is None:
        return []
    if callable(raw):
        raw = raw()
    points: List[Point] = []
    for vertex in raw:
        location = getattr(getattr(vertex, "dxf", None), "location", None)
        point = _xy(location if location is not None else vertex)
        if point is not None:
            points.append(point)
    return points


def _resolve_point(
    entity: Any,
    names: Sequence[str],
    vertex_index: Optional[int] = None,
) -> Point:
    """
    Resolve a point field with fallbacks.

    Tries each DXF attribute in ``names`` in order, then the entity's vertex
    array at ``vertex_index``, then the origin.
    """
    for name in names:
        point = _xy(_dxf_value(entity, name))
        if point is not None:
            return point
    if vertex_index is not None:
        vertices = _vertices(entity)
        if len(vertices) > vertex_index:
            return vertices[vertex_index]
    return (0.0, 0.0)


def _resolve_float(entity: Any, names: Sequence[str], default: float) -> float:
    for name in names:
        value = _dxf_value(entity, name)
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if number:
            return number
    return default


# ---------------------------------------------------------------------------
# Per-type handlers
# ---------------------------------------------------------------------------

def _line(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    return [
        Line(
            p1=_resolve_point(entity, ("start",), 0),
            p2=_resolve_point(entity, ("end",), 1),
            layer=layer,
            color_index=color,
        )
    ]


def _circle(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    return [
        Circle(
            center=_resolve_point(entity, ("center",)),
            radius=_resolve_float(entity, ("radius",), 1.0),
            layer=layer,
            color_index=color,
        )
    ]


def _arc(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    start = _dxf_value(entity, "start_angle")
    end = _dxf_value(entity, "end_angle")
    return [
        Arc(
            center=_resolve_point(entity, ("center",)),
            radius=_resolve_float(entity, ("radius",), 1.0),
            start_angle=float(start) if start is not None else 0.0,
            end_angle=float(end) if end is not None else 360.0,
            layer=layer,
            color_index=color,
        )
    ]


def _ellipse(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    major = _xy(_dxf_value(entity, "major_axis")) or (1.0, 0.0)
    return [
        Ellipse(
            center=_resolve_point(entity, ("center",)),
            major_axis=major,
            axis_ratio=_resolve_float(entity, ("ratio",), 1.0),
            layer=layer,
            color_index=color,
        )
    ]


def _lwpolyline(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    points = [(float(x), float(y)) for x, y in entity.get_points("xy")]
    if not points:
        return []
    return [
        Polyline(
            vertices=tuple(points),
            closed=bool(entity.closed),
            layer=layer,
            color_index=color,
        )
    ]


def _polyline(entity: Any, layer: str, color: Optional[int]) -> Optional[List[NormalizedEntity]]:
    if not (entity.is_2d_polyline or entity.is_3d_polyline):
        # Polyface and polygon meshes are not previewed
        return None
    points = _vertices(entity)
    if not points:
        return []
    return [
        Polyline(
            vertices=tuple(points),
            closed=bool(entity.is_closed),
            layer=layer,
            color_index=color,
        )
    ]


def _spline(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    points = [p for p in (_xy(v) for v in entity.control_points) if p is not None]
    if len(points) < 2:
        points = [p for p in (_xy(v) for v in entity.fit_points) if p is not None]
    if len(points) < 2:
        return []
    return [Spline(control_points=tuple(points), layer=layer, color_index=color)]


def _text(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    if entity.dxftype() == "MTEXT":
        content = entity.plain_text()
    else:
        content = _dxf_value(entity, "text") or ""
    return [
        Text(
            position=_resolve_point(entity, ("insert", "align_point")),
            content=str(content),
            height=_resolve_float(entity, ("height", "char_height"), DEFAULT_TEXT_HEIGHT),
            rotation=_resolve_float(entity, ("rotation",), 0.0),
            layer=layer,
            color_index=color,
        )
    ]


def _point(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    return [
        PointEntity(
            position=_resolve_point(entity, ("location",)),
            layer=layer,
            color_index=color,
        )
    ]


def _attribute(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    if getattr(entity, "is_invisible", False):
        return []
    content = _dxf_value(entity, "text") or _dxf_value(entity, "tag") or ""
    if not content:
        return []
    return [
        Attribute(
            position=_resolve_point(entity, ("insert", "align_point")),
            content=str(content),
            height=_resolve_float(entity, ("height",), DEFAULT_TEXT_HEIGHT),
            layer=layer,
            color_index=color,
        )
    ]


def _insert(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    result: List[NormalizedEntity] = [
        Insert(
            block_name=str(_dxf_value(entity, "name") or ""),
            position=_resolve_point(entity, ("insert",)),
            scale_x=_resolve_float(entity, ("xscale",), 1.0),
            scale_y=_resolve_float(entity, ("yscale",), 1.0),
            rotation=_resolve_float(entity, ("rotation",), 0.0),
            layer=layer,
            color_index=color,
        )
    ]
    # Attached ATTRIBs are already in world coordinates
    for attrib in getattr(entity, "attribs", []) or []:
        attrib_layer, attrib_color = _layer_and_color(attrib)
        result.extend(_attribute(attrib, attrib_layer, attrib_color))
    return result


def _solid(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    corners = [_xy(_dxf_value(entity, f"vtx{i}")) for i in range(4)]
    if entity.dxftype() in ("SOLID", "TRACE") and corners[3] is not None:
        # SOLID/TRACE store corners in zigzag order
        corners = [corners[0], corners[1], corners[3], corners[2]]
    points = [c for c in corners if c is not None]
    if len(points) >= 2 and points[-1] == points[-2]:
        points.pop()
    if len(points) < 3:
        return []
    return [SolidFace(corners=tuple(points), layer=layer, color_index=color)]


def _hatch_boundary(entity: Any) -> List[Point]:
    """Outline of the first boundary path (polyline or line/arc/spline edges)."""
    for path in entity.paths:
        if hasattr(path, "vertices"):
            points = [(float(v[0]), float(v[1])) for v in path.vertices]
        else:
            points = []
            for edge in getattr(path, "edges", []):
                start = getattr(edge, "start", None)
                if start is not None and not hasattr(edge, "radius"):
                    points.append((float(start[0]), float(start[1])))
                elif hasattr(edge, "radius") and hasattr(edge, "center"):
                    angle = math.radians(float(edge.start_angle))
                    points.append((
                        float(edge.center[0]) + float(edge.radius) * math.cos(angle),
                        float(edge.center[1]) + float(edge.radius) * math.sin(angle),
                    ))
                elif hasattr(edge, "control_points"):
                    points.extend(
                        (float(p[0]), float(p[1])) for p in edge.control_points
                    )
        if len(points) >= 3:
            return points
    return []


def _hatch(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    points = _hatch_boundary(entity)
    if not points:
        return []
    return [SolidFace(corners=tuple(points), layer=layer, color_index=color)]


def _leader(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    points = _vertices(entity)
    if len(points) < 2:
        return []
    return [Leader(vertices=tuple(points), layer=layer, color_index=color)]


def _dimension_text(entity: Any) -> str:
    text = _dxf_value(entity, "text") or ""
    if text not in ("", "<>"):
        return str(text)
    try:
        measurement = entity.get_measurement()
    except Exception:  # noqa: BLE001 - unsupported dimension subtype
        return ""
    if isinstance(measurement, (int, float)):
        return f"{measurement:.2f}"
    return ""


def _dimension(entity: Any, layer: str, color: Optional[int]) -> List[NormalizedEntity]:
    return [
        Text(
            position=_resolve_point(entity, ("text_midpoint", "defpoint")),
            content=_dimension_text(entity),
            height=DIMENSION_TEXT_HEIGHT,
            layer=layer,
            color_index=color,
        )
    ]


_HANDLERS: Dict[str, Callable[..., Optional[List[NormalizedEntity]]]] = {
    "LINE": _line,
    "CIRCLE": _circle,
    "ARC": _arc,
    "ELLIPSE": _ellipse,
    "LWPOLYLINE": _lwpolyline,
    "POLYLINE": _polyline,
    "SPLINE": _spline,
    "TEXT": _text,
    "MTEXT": _text,
    "POINT": _point,
    "INSERT": _insert,
    "SOLID": _solid,
    "TRACE": _solid,
    "3DFACE": _solid,
    "HATCH": _hatch,
    "LEADER": _leader,
    "ATTRIB": _attribute,
    "ATTDEF": _attribute,
    "DIMENSION": _dimension,
}

SUPPORTED_ENTITY_TYPES = frozenset(_HANDLERS)


def _layer_and_color(entity: Any) -> Tuple[str, Optional[int]]:
    layer = _dxf_value(entity, "layer") or DEFAULT_LAYER
    color = _dxf_value(entity, "color")
    return str(layer), (int(color) if color is not None else None)


class GeometryExtractor:
    """
    Maps a DXF document onto normalized entities, layers and blocks.

    One extractor per document; counters of skipped entity types are kept on
    the returned ``ExtractedDrawing``.
    """

    def extract(self, content: str) -> ExtractedDrawing:
        """
        Extract geometry from DXF text.

        Raises:
            ParseCorruptedError: the content is not a structurally valid DXF
        """
        doc = read_dxf_document_from_text(content)
        return self.extract_document(doc)

    def extract_file(self, path: Union[str, Path]) -> ExtractedDrawing:
        return self.extract(read_dxf_text(path))

    def extract_document(self, doc: Any) -> ExtractedDrawing:
        drawing = ExtractedDrawing()
        drawing.layers = self._extract_layers(doc)
        drawing.blocks = self._extract_blocks(doc, drawing.skipped_by_type)
        drawing.entities = self._map_entities(doc.modelspace(), drawing.skipped_by_type)

        if drawing.skipped_by_type:
            for dxftype, count in sorted(drawing.skipped_by_type.items()):
                entities_skipped_total.labels(entity_type=dxftype).inc(count)
            logger.debug(
                "Skipped unsupported DXF entities",
                extra={"count": drawing.skipped_count, "entity_type": sorted(drawing.skipped_by_type)},
            )

        logger.info(
            f"Extracted {len(drawing.entities)} entities, {len(drawing.layers)} layers, "
            f"{len(drawing.blocks)} blocks"
        )
        return drawing

    def _extract_layers(self, doc: Any) -> Dict[str, Layer]:
        layers: Dict[str, Layer] = {}
        for entry in doc.layers:
            name = str(entry.dxf.name)
            color = _dxf_value(entry, "color")
            linetype = _dxf_value(entry, "linetype") or DEFAULT_LINETYPE
            layers[name] = Layer(
                name=name,
                # Negative color marks a layer that is switched off
                color_index=abs(int(color)) if color is not None else 7,
                visible=True,
                line_type=str(linetype),
            )
        return layers

    def _extract_blocks(self, doc: Any, skipped: Dict[str, int]) -> Dict[str, Block]:
        blocks: Dict[str, Block] = {}
        for block_layout in doc.blocks:
            if block_layout.is_any_layout:
                continue
            name = str(block_layout.name)
            blocks[name] = Block(
                name=name,
                entities=self._map_entities(block_layout, skipped),
                base_point=_xy(getattr(block_layout, "base_point", None)) or (0.0, 0.0),
            )
        return blocks

    def _map_entities(self, entities: Any, skipped: Dict[str, int]) -> List[NormalizedEntity]:
        result: List[NormalizedEntity] = []
        for entity in entities:
            dxftype = entity.dxftype()
            handler = _HANDLERS.get(dxftype)
            mapped: Optional[List[NormalizedEntity]] = None
            if handler is not None:
                try:
                    layer, color = _layer_and_color(entity)
                    mapped = handler(entity, layer, color)
                except Exception as e:  # noqa: BLE001 - one bad entity must not sink the drawing
                    logger.debug(f"Malformed {dxftype} entity skipped: {e}")
            if mapped is None:
                skipped[dxftype] = skipped.get(dxftype, 0) + 1
                continue
            result.extend(mapped)
        return result


def extract_geometry(content: str) -> ExtractedDrawing:
    """Convenience function: extract geometry from DXF text."""
    return GeometryExtractor().extract(content)
