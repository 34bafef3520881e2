"""
Viewport bounds accumulation.

The tracker sees every coordinate the renderer emits, mapped through the
current block transform, so inserted geometry is measured where it is drawn.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from src.core.cad.geometry.transform import Affine2D

Point = Tuple[float, float]


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def padded(self, ratio: float) -> "Bounds":
        margin = max(self.width, self.height) * ratio
        return Bounds(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )


DEFAULT_BOUNDS = Bounds(0.0, 0.0, 1000.0, 1000.0)


class BoundsTracker:
    """Accumulates a bounding box over finite model-space coordinates."""

    def __init__(self) -> None:
        self._min_x = math.inf
        self._min_y = math.inf
        self._max_x = -math.inf
        self._max_y = -math.inf
        self._stack: List[Affine2D] = [Affine2D.identity()]

    @property
    def transform(self) -> Affine2D:
        return self._stack[-1]

    @contextmanager
    def push(self, local: Affine2D) -> Iterator[None]:
        """Measure nested coordinates through ``local`` (composed with the current transform)."""
        self._stack.append(self._stack[-1] @ local)
        try:
            yield
        finally:
            self._stack.pop()

    def include(self, x: float, y: float) -> None:
        if not (math.isfinite(x) and math.isfinite(y)):
            return
        x, y = self._stack[-1].apply((x, y))
        self._min_x = min(self._min_x, x)
        self._min_y = min(self._min_y, y)
        self._max_x = max(self._max_x, x)
        self._max_y = max(self._max_y, y)

    def include_points(self, points: Iterable[Point]) -> None:
        for x, y in points:
            self.include(x, y)

    def include_box(self, cx: float, cy: float, rx: float, ry: float) -> None:
        """Include the axis-aligned box around a center (all four corners)."""
        self.include(cx - rx, cy - ry)
        self.include(cx + rx, cy - ry)
        self.include(cx - rx, cy + ry)
        self.include(cx + rx, cy + ry)

    @property
    def is_empty(self) -> bool:
        return not math.isfinite(self._min_x)

    def bounds(self) -> Bounds:
        """Accumulated box, or the fallback box when nothing usable was seen."""
        if self.is_empty:
            return DEFAULT_BOUNDS
        if self._min_x == self._max_x and self._min_y == self._max_y:
            # Single location: give it a unit extent so padding stays non-zero
            return Bounds(
                self._min_x - 0.5,
                self._min_y - 0.5,
                self._max_x + 0.5,
                self._max_y + 0.5,
            )
        return Bounds(self._min_x, self._min_y, self._max_x, self._max_y)
