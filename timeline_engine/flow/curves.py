"""
Stream curve construction.

Consecutive nodes are joined by cubic Bezier segments. Where a node's
neighbours lie strictly before and after it in time, its tangent is
horizontal and the control points sit at the horizontal midpoint, level
with each end.

Nodes sharing an instant with a neighbour (a solo event and a junction
at the same time) take the direction of the chord between their
neighbours instead, Catmull-Rom style. The incoming and outgoing
tangents are parallel at every interior node, so the stream only
changes direction smoothly.
"""

from __future__ import annotations
import math
from typing import List, Sequence, Tuple

from ..contracts.geometry import Point
from ..contracts.views import CubicSegment, FlowCurve

HORIZONTAL = (1.0, 0.0)


def _tangent(points: Sequence[Point], index: int) -> Tuple[float, float]:
    """Unit tangent at `points[index]`."""
    before = points[index - 1] if index > 0 else None
    after = points[index + 1] if index + 1 < len(points) else None
    point = points[index]

    gaps = [point.x - before.x] if before else []
    gaps += [after.x - point.x] if after else []
    if all(gap > 0 for gap in gaps):
        return HORIZONTAL

    head = after or point
    tail = before or point
    dx, dy = head.x - tail.x, head.y - tail.y
    length = math.hypot(dx, dy)
    if length == 0:
        return HORIZONTAL
    return dx / length, dy / length


def _handle(tangent: Tuple[float, float], start: Point, end: Point) -> float:
    if tangent == HORIZONTAL:
        return (end.x - start.x) / 2
    return start.distance_to(end) / 3


def smooth_curve(points: Sequence[Point]) -> FlowCurve:
    """Curve through `points` in order; empty input gives an empty curve."""
    if not points:
        return FlowCurve(start=None)

    tangents = [_tangent(points, i) for i in range(len(points))]
    segments: List[CubicSegment] = []
    for i in range(1, len(points)):
        previous, current = points[i - 1], points[i]
        (tx0, ty0), (tx1, ty1) = tangents[i - 1], tangents[i]
        out_length = _handle(tangents[i - 1], previous, current)
        in_length = _handle(tangents[i], previous, current)
        segments.append(CubicSegment(
            control1=previous.shifted(tx0 * out_length, ty0 * out_length),
            control2=current.shifted(-tx1 * in_length, -ty1 * in_length),
            end=current
        ))
    return FlowCurve(start=points[0], segments=tuple(segments))
