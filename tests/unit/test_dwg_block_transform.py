"""Tests for block placement as it is rendered: insert groups, bounds and cycle guards."""

import math
import re
import xml.etree.ElementTree as ET

import pytest

from src.core.cad.dxf.blocks import insert_transform
from src.core.cad.dxf.entities import Block, Insert, Line
from src.core.cad.geometry.transform import Affine2D
from src.core.cad.svg.bounds import DEFAULT_BOUNDS
from src.core.cad.svg.renderer import SvgRenderer, render

SVG_NS = "{http://www.w3.org/2000/svg}"


def _close(p, q, tol=1e-9):
    return math.isclose(p[0], q[0], abs_tol=tol) and math.isclose(p[1], q[1], abs_tol=tol)


def _svg_transform(value: str) -> Affine2D:
    """Matrix of an SVG transform list made of translate/rotate/scale."""
    matrix = Affine2D.identity()
    for name, args in re.findall(r"(\w+)\(([^)]*)\)", value):
        nums = [float(v) for v in args.split(",")]
        if name == "translate":
            step = Affine2D.translation(nums[0], nums[1])
        elif name == "rotate":
            step = Affine2D.rotation(nums[0])
        elif name == "scale":
            step = Affine2D.scaling(nums[0], nums[-1])
        else:
            raise AssertionError(f"unexpected transform {name}")
        matrix = matrix @ step
    return matrix


def _placed_lines(svg: str):
    """Endpoints of every rendered line, mapped through its enclosing insert groups."""
    content = ET.fromstring(svg.encode("utf-8")).find(f"{SVG_NS}g")
    lines = []

    def walk(element, matrix):
        for child in element:
            if child.tag == f"{SVG_NS}g":
                walk(child, matrix @ _svg_transform(child.get("transform", "")))
            elif child.tag == f"{SVG_NS}line":
                p1 = (float(child.get("x1")), float(child.get("y1")))
                p2 = (float(child.get("x2")), float(child.get("y2")))
                lines.append((matrix.apply(p1), matrix.apply(p2)))

    walk(content, Affine2D.identity())
    return lines


def _bounds_tuple(bounds):
    return (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y)


class TestAffine2D:
    def test_identity(self):
        assert Affine2D.identity().apply((3.0, -4.0)) == (3.0, -4.0)

    def test_composition_applies_right_operand_first(self):
        m = Affine2D.translation(10, 0) @ Affine2D.scaling(2, 2)
        assert m.apply((1, 1)) == (12, 2)

    def test_rotation_90(self):
        assert _close(Affine2D.rotation(90).apply((1, 0)), (0, 1))

    def test_placement_honors_base_point(self):
        m = Affine2D.placement((5, 5), base_point=(1, 1))
        assert _close(m.apply((1, 1)), (5, 5))

    def test_insert_transform_uses_block_base_point(self):
        block = Block(name="B", base_point=(2, 0))
        m = insert_transform(Insert(block_name="B", position=(0, 0)), block)
        assert _close(m.apply((2, 0)), (0, 0))


class TestInsertRendering:
    def test_insert_scaled_and_rotated(self):
        """Unit line in a block, inserted at (10,10), scale 2, rotation 90."""
        blocks = {"B": Block(name="B", entities=[Line(p1=(0, 0), p2=(1, 0))])}
        insert = Insert(block_name="B", position=(10, 10), scale_x=2, scale_y=2, rotation=90)

        result = render([insert], blocks=blocks)

        assert 'transform="translate(10,10) rotate(90) scale(2,2)"' in result.svg
        [(p1, p2)] = _placed_lines(result.svg)
        assert _close(p1, (10, 10))
        assert _close(p2, (10, 12))
        assert _bounds_tuple(result.bounds) == pytest.approx((10, 10, 10, 12))

    def test_base_point_offsets_block_contents(self):
        blocks = {"B": Block(name="B", entities=[Line(p1=(1, 2), p2=(2, 2))], base_point=(1, 2))}

        result = render([Insert(block_name="B", position=(10, 10))], blocks=blocks)

        [(p1, p2)] = _placed_lines(result.svg)
        assert _close(p1, (10, 10))
        assert _close(p2, (11, 10))
        assert _bounds_tuple(result.bounds) == pytest.approx((10, 10, 11, 10))

    def test_nested_inserts_compose(self):
        blocks = {
            "INNER": Block(name="INNER", entities=[Line(p1=(0, 0), p2=(1, 0))]),
            "OUTER": Block(name="OUTER", entities=[Insert(block_name="INNER", position=(5, 0))]),
        }
        insert = Insert(block_name="OUTER", position=(100, 0), scale_x=2, scale_y=2)

        result = render([insert], blocks=blocks)

        assert result.svg.count('class="dwg-insert"') == 2
        [(p1, p2)] = _placed_lines(result.svg)
        assert _close(p1, (110, 0))
        assert _close(p2, (112, 0))
        assert result.bounds.min_x == pytest.approx(110)
        assert result.bounds.max_x == pytest.approx(112)

    def test_self_reference_terminates(self):
        blocks = {
            "LOOP": Block(
                name="LOOP",
                entities=[Line(p1=(0, 0), p2=(1, 1)), Insert(block_name="LOOP", position=(1, 1))],
            )
        }

        result = render([Insert(block_name="LOOP", position=(0, 0))], blocks=blocks)

        # The cyclic insert contributes nothing; the line is drawn once
        assert result.svg.count("<line ") == 1
        assert result.svg.count('class="dwg-insert"') == 1

    def test_mutual_cycle_terminates(self):
        blocks = {
            "A": Block(name="A", entities=[Line(p1=(0, 0), p2=(1, 0)), Insert(block_name="B", position=(0, 1))]),
            "B": Block(name="B", entities=[Line(p1=(0, 0), p2=(0, 1)), Insert(block_name="A", position=(1, 0))]),
        }

        result = render([Insert(block_name="A", position=(0, 0))], blocks=blocks)

        assert len(_placed_lines(result.svg)) == 2
        assert result.element_count == 2

    def test_unknown_block_yields_nothing(self):
        result = render([Insert(block_name="MISSING", position=(0, 0))])

        assert "dwg-insert" not in result.svg
        assert result.element_count == 0
        assert result.bounds == DEFAULT_BOUNDS

    def test_max_depth(self):
        blocks = {
            f"L{i}": Block(name=f"L{i}", entities=[Insert(block_name=f"L{i + 1}", position=(0, 0))])
            for i in range(5)
        }
        blocks["L5"] = Block(name="L5", entities=[Line(p1=(0, 0), p2=(1, 0))])
        top = [Insert(block_name="L0", position=(0, 0))]

        assert render(top, blocks=blocks).svg.count("<line ") == 1

        shallow = SvgRenderer(blocks=blocks, max_block_depth=3).render(top)
        assert "<line " not in shallow.svg
        assert "dwg-insert" not in shallow.svg
