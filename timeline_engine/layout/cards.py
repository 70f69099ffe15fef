"""
Card Placement
==============

Greedy, chronological placement of detail cards on alternating sides
of the axis (maximal display mode).

Each side keeps its own list of occupied rects. A proposed card that
overlaps an occupied rect is pushed forward along the axis until it
is clear, so a card never overlaps an earlier card from the same pass.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple

from ..contracts.geometry import LineSegment, Point, Rect
from ..contracts.views import Orientation


@dataclass(frozen=True)
class CardMetrics:
    card_width: float = 280.0
    gutter: float = 24.0          # gap between axis and card
    card_spacing: float = 16.0    # gap left between shifted cards


class CardPlacer:
    """
    Places one card per marker, alternating sides.

    Vertical axis: cards go left, then right.
    Horizontal axis: cards go above, then below.
    """

    def __init__(self, orientation: Orientation, centerline: float, metrics: CardMetrics):
        self._orientation = orientation
        self._centerline = centerline
        self._metrics = metrics
        self._occupied: Tuple[List[Rect], List[Rect]] = ([], [])
        self._next_side = 0

    def place(self, marker: Point, card_height: float) -> Tuple[Rect, LineSegment]:
        side = self._next_side
        self._next_side = 1 - side

        proposed = self._propose(marker, card_height, side)
        card = self._resolve_collisions(proposed, self._occupied[side])
        self._occupied[side].append(card)
        return card, LineSegment(marker, self._anchor(card, side))

    def _propose(self, marker: Point, card_height: float, side: int) -> Rect:
        m = self._metrics
        if self._orientation is Orientation.VERTICAL:
            top = marker.y - card_height / 2
            if side == 0:
                return Rect(self._centerline - m.gutter - m.card_width, top, m.card_width, card_height)
            return Rect(self._centerline + m.gutter, top, m.card_width, card_height)

        left = marker.x - m.card_width / 2
        if side == 0:
            return Rect(left, self._centerline - m.gutter - card_height, m.card_width, card_height)
        return Rect(left, self._centerline + m.gutter, m.card_width, card_height)

    def _resolve_collisions(self, proposed: Rect, occupied: List[Rect]) -> Rect:
        adjusted = proposed
        moved = True
        while moved:
            moved = False
            for existing in occupied:
                if adjusted.overlaps(existing):
                    adjusted = self._push_past(adjusted, existing)
                    moved = True
        return adjusted

    def _push_past(self, card: Rect, existing: Rect) -> Rect:
        spacing = self._metrics.card_spacing
        if self._orientation is Orientation.VERTICAL:
            return card.shift(0.0, existing.bottom - card.top + spacing)
        return card.shift(existing.right - card.left + spacing, 0.0)

    def _anchor(self, card: Rect, side: int) -> Point:
        """Midpoint of the card edge facing the axis."""
        center = card.center
        if self._orientation is Orientation.VERTICAL:
            return Point(card.right if side == 0 else card.left, center.y)
        return Point(center.x, card.bottom if side == 0 else card.top)
