"""Tests for DXF geometry extraction."""

from __future__ import annotations

import io

import pytest

ezdxf = pytest.importorskip("ezdxf")

from src.core.cad.dxf.entities import (  # noqa: E402
    Arc,
    Attribute,
    Circle,
    Ellipse,
    Insert,
    Leader,
    Line,
    PointEntity,
    Polyline,
    SolidFace,
    Spline,
    Text,
)
from src.core.cad.dxf.extractor import GeometryExtractor, extract_geometry  # noqa: E402
from src.core.errors import ParseCorruptedError  # noqa: E402


def _to_text(doc) -> str:
    buf = io.StringIO()
    doc.write(buf)
    return buf.getvalue()


def _of_type(drawing, cls):
    return [e for e in drawing.entities if isinstance(e, cls)]


def test_unknown_entity_types_are_counted_not_fatal():
    doc = ezdxf.new()
    msp = doc.modelspace()
    for i in range(5):
        msp.add_line((0, i), (10, i))
    msp.add_ray((0, 0), (1, 0))
    msp.add_xline((0, 0), (0, 1))
    mesh = msp.add_mesh()
    with mesh.edit_data() as data:
        data.vertices = [(0, 0, 0), (1, 0, 0), (1, 1, 0)]
        data.faces = [(0, 1, 2)]

    drawing = extract_geometry(_to_text(doc))

    assert len(drawing.entities) == 5
    assert all(isinstance(e, Line) for e in drawing.entities)
    assert drawing.skipped_by_type == {"RAY": 1, "XLINE": 1, "MESH": 1}
    assert drawing.skipped_count == 3


def test_garbage_content_raises_parse_corrupted():
    with pytest.raises(ParseCorruptedError):
        extract_geometry("this is not a drawing\nat all\n")


def test_empty_content_raises_parse_corrupted():
    with pytest.raises(ParseCorruptedError):
        extract_geometry("   ")


def test_empty_drawing_is_valid():
    drawing = extract_geometry(_to_text(ezdxf.new()))
    assert drawing.entities == []
    assert "0" in drawing.layers


def test_basic_primitives():
    doc = ezdxf.new()
    msp = doc.modelspace()
    msp.add_line((1, 2), (3, 4), dxfattribs={"color": 1})
    msp.add_circle((5, 5), 2)
    msp.add_arc((0, 0), 3, 10, 100)
    msp.add_ellipse((0, 0), major_axis=(4, 0), ratio=0.5)
    msp.add_lwpolyline([(0, 0), (1, 0), (1, 1)], close=True)
    msp.add_point((7, 8))

    drawing = extract_geometry(_to_text(doc))

    line = _of_type(drawing, Line)[0]
    assert line.p1 == (1.0, 2.0) and line.p2 == (3.0, 4.0)
    assert line.color_index == 1

    circle = _of_type(drawing, Circle)[0]
    assert circle.center == (5.0, 5.0) and circle.radius == 2.0

    arc = _of_type(drawing, Arc)[0]
    assert (arc.start_angle, arc.end_angle) == (10.0, 100.0)

    ellipse = _of_type(drawing, Ellipse)[0]
    assert ellipse.major_axis == (4.0, 0.0)
    assert ellipse.axis_ratio == pytest.approx(0.5)

    poly = _of_type(drawing, Polyline)[0]
    assert poly.closed is True
    assert poly.vertices == ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0))

    assert _of_type(drawing, PointEntity)[0].position == (7.0, 8.0)


def test_polyline_2d():
    doc = ezdxf.new()
    doc.modelspace().add_polyline2d([(0, 0), (2, 0), (2, 2)])

    drawing = extract_geometry(_to_text(doc))

    poly = _of_type(drawing, Polyline)[0]
    assert poly.vertices == ((0.0, 0.0), (2.0, 0.0), (2.0, 2.0))
    assert poly.closed is False


def test_spline_control_points():
    doc = ezdxf.new()
    doc.modelspace().add_open_spline([(0, 0), (1, 2), (3, 2), (4, 0)])

    spline = _of_type(extract_geometry(_to_text(doc)), Spline)[0]
    assert spline.control_points[0] == (0.0, 0.0)
    assert spline.control_points[-1] == (4.0, 0.0)


def test_text_defaults_and_mtext():
    doc = ezdxf.new()
    msp = doc.modelspace()
    msp.add_text("Hello", dxfattribs={"insert": (1, 1), "rotation": 45})
    msp.add_mtext("Line one", dxfattribs={"insert": (2, 2), "char_height": 4})

    texts = _of_type(extract_geometry(_to_text(doc)), Text)

    by_content = {t.content: t for t in texts}
    assert by_content["Hello"].position == (1.0, 1.0)
    assert by_content["Hello"].rotation == pytest.approx(45)
    assert by_content["Hello"].height > 0
    assert by_content["Line one"].height == pytest.approx(4)


def test_solid_corners_reordered():
    doc = ezdxf.new()
    doc.modelspace().add_solid([(0, 0), (1, 0), (0, 1), (1, 1)])

    solid = _of_type(extract_geometry(_to_text(doc)), SolidFace)[0]
    # Zigzag storage order becomes a proper outline
    assert solid.corners == ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0))


def test_hatch_polyline_boundary():
    doc = ezdxf.new()
    hatch = doc.modelspace().add_hatch(color=2)
    hatch.paths.add_polyline_path([(0, 0), (4, 0), (4, 4), (0, 4)], is_closed=True)

    solid = _of_type(extract_geometry(_to_text(doc)), SolidFace)[0]
    assert len(solid.corners) == 4
    assert solid.color_index == 2


def test_leader_vertices():
    doc = ezdxf.new()
    doc.modelspace().add_leader([(0, 0), (5, 5), (10, 5)])

    leader = _of_type(extract_geometry(_to_text(doc)), Leader)[0]
    assert leader.vertices[0] == (0.0, 0.0)
    assert len(leader.vertices) == 3


def test_blocks_inserts_and_attributes():
    doc = ezdxf.new()
    block = doc.blocks.new(name="DOOR", base_point=(1, 0))
    block.add_line((0, 0), (1, 0), dxfattribs={"layer": "FRAME"})
    block.add_attdef("TAG", insert=(0, 1))

    msp = doc.modelspace()
    ref = msp.add_blockref("DOOR", (10, 10), dxfattribs={"layer": "DOORS", "xscale": 2, "rotation": 30})
    ref.add_attrib("TAG", "D-01", insert=(10, 11))

    drawing = extract_geometry(_to_text(doc))

    assert "DOOR" in drawing.blocks
    door = drawing.blocks["DOOR"]
    assert door.base_point == (1.0, 0.0)
    assert any(isinstance(e, Line) and e.layer == "FRAME" for e in door.entities)

    insert = _of_type(drawing, Insert)[0]
    assert insert.block_name == "DOOR"
    assert insert.position == (10.0, 10.0)
    assert insert.scale_x == pytest.approx(2)
    assert insert.scale_y == pytest.approx(1)
    assert insert.rotation == pytest.approx(30)
    assert insert.layer == "DOORS"

    attribs = _of_type(drawing, Attribute)
    assert [a.content for a in attribs] == ["D-01"]


def test_layers_extracted():
    doc = ezdxf.new()
    doc.layers.add("WALLS", color=1, linetype="CONTINUOUS")

    drawing = extract_geometry(_to_text(doc))

    walls = drawing.layers["WALLS"]
    assert walls.color_index == 1
    assert walls.visible is True
    assert walls.to_dict()["color"] == "#FF0000"


def test_extract_file(tmp_path):
    doc = ezdxf.new()
    doc.modelspace().add_line((0, 0), (1, 1))
    path = tmp_path / "a.dxf"
    path.write_text(_to_text(doc), encoding="utf-8")

    drawing = GeometryExtractor().extract_file(path)

    assert len(drawing.entities) == 1
