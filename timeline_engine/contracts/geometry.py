"""
Geometry Contracts

Plain 2-D primitives emitted to the rendering layer.
Screen coordinates: x grows right, y grows down.
"""

from __future__ import annotations
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def shifted(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Size dimensions must be non-negative, got {self.width}x{self.height}"
            )

    @property
    def center(self) -> Point:
        return Point(self.width / 2, self.height / 2)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle (left, top, width, height)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Point:
        return Point(self.left + self.width / 2, self.top + self.height / 2)

    def overlaps(self, other: Rect) -> bool:
        """True if the interiors intersect (touching edges do not overlap)."""
        return (
            self.left < other.right and other.left < self.right
            and self.top < other.bottom and other.top < self.bottom
        )

    def shift(self, dx: float, dy: float) -> Rect:
        return Rect(self.left + dx, self.top + dy, self.width, self.height)

    def contains(self, point: Point) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom


@dataclass(frozen=True)
class LineSegment:
    """Straight connector, e.g. from a marker to its card."""
    start: Point
    end: Point

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)
