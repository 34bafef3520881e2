"""
2D affine transforms for block placement.

Matrices use the SVG convention ``(a, b, c, d, e, f)``::

    x' = a * x + c * y + e
    y' = b * x + d * y + f
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class Affine2D:
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> "Affine2D":
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float) -> "Affine2D":
        return cls(e=tx, f=ty)

    @classmethod
    def scaling(cls, sx: float, sy: float) -> "Affine2D":
        return cls(a=sx, d=sy)

    @classmethod
    def rotation(cls, degrees: float) -> "Affine2D":
        rad = math.radians(degrees)
        cos_r = math.cos(rad)
        sin_r = math.sin(rad)
        return cls(a=cos_r, b=sin_r, c=-sin_r, d=cos_r)

    @classmethod
    def placement(
        cls,
        position: Point,
        scale_x: float = 1.0,
        scale_y: float = 1.0,
        rotation: float = 0.0,
        base_point: Point = (0.0, 0.0),
    ) -> "Affine2D":
        """Block insert transform: shift by base point, scale, rotate, translate."""
        return (
            cls.translation(position[0], position[1])
            @ cls.rotation(rotation)
            @ cls.scaling(scale_x, scale_y)
            @ cls.translation(-base_point[0], -base_point[1])
        )

    def __matmul__(self, other: "Affine2D") -> "Affine2D":
        """Compose: ``(self @ other)`` applies ``other`` first."""
        return Affine2D(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def apply(self, point: Point) -> Point:
        x, y = point
        return (self.a * x + self.c * y + self.e, self.b * x + self.d * y + self.f)
