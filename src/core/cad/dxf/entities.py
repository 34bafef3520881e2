"""
Normalized drawing entities.

A closed set of frozen dataclasses that the extractor produces from ezdxf
entities and the SVG renderer consumes. Coordinates are 2D model-space
(Y-up) values; ``color_index`` of ``None`` means "by layer".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from src.core.cad.dxf.colors import aci_to_hex

Point = Tuple[float, float]

DEFAULT_LAYER = "0"
DEFAULT_LINETYPE = "CONTINUOUS"
DEFAULT_TEXT_HEIGHT = 2.5


@dataclass(frozen=True)
class Line:
    kind: ClassVar[str] = "line"
    p1: Point
    p2: Point
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Circle:
    kind: ClassVar[str] = "circle"
    center: Point
    radius: float
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Arc:
    """Counter-clockwise arc from ``start_angle`` to ``end_angle`` (degrees)."""
    kind: ClassVar[str] = "arc"
    center: Point
    radius: float
    start_angle: float
    end_angle: float
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Ellipse:
    kind: ClassVar[str] = "ellipse"
    center: Point
    major_axis: Point  # endpoint of the major axis, relative to center
    axis_ratio: float
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Polyline:
    kind: ClassVar[str] = "polyline"
    vertices: Tuple[Point, ...]
    closed: bool = False
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Spline:
    kind: ClassVar[str] = "spline"
    control_points: Tuple[Point, ...]
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Text:
    kind: ClassVar[str] = "text"
    position: Point
    content: str
    height: float = DEFAULT_TEXT_HEIGHT
    rotation: float = 0.0  # Degrees
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class PointEntity:
    kind: ClassVar[str] = "point"
    position: Point
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Insert:
    kind: ClassVar[str] = "insert"
    block_name: str
    position: Point
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0  # Degrees
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class SolidFace:
    kind: ClassVar[str] = "solid"
    corners: Tuple[Point, ...]
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Leader:
    kind: ClassVar[str] = "leader"
    vertices: Tuple[Point, ...]
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


@dataclass(frozen=True)
class Attribute:
    kind: ClassVar[str] = "attribute"
    position: Point
    content: str
    height: float = DEFAULT_TEXT_HEIGHT
    layer: str = DEFAULT_LAYER
    color_index: Optional[int] = None


NormalizedEntity = Union[
    Line,
    Circle,
    Arc,
    Ellipse,
    Polyline,
    Spline,
    Text,
    PointEntity,
    Insert,
    SolidFace,
    Leader,
    Attribute,
]


@dataclass
class Layer:
    """Layer table entry. Visibility is a view-time concern, always on here."""
    name: str
    color_index: int = 7
    visible: bool = True
    line_type: str = DEFAULT_LINETYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "color": aci_to_hex(self.color_index),
            "visible": self.visible,
            "lineType": self.line_type,
        }


@dataclass
class Block:
    name: str
    entities: List[NormalizedEntity] = field(default_factory=list)
    base_point: Point = (0.0, 0.0)


@dataclass
class ExtractedDrawing:
    """Geometry extractor output."""
    entities: List[NormalizedEntity] = field(default_factory=list)
    layers: Dict[str, Layer] = field(default_factory=dict)
    blocks: Dict[str, Block] = field(default_factory=dict)
    skipped_by_type: Dict[str, int] = field(default_factory=dict)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped_by_type.values())

    def layer_list(self) -> List[Layer]:
        return list(self.layers.values())
