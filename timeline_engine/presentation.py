"""
Presentation Mapping
====================

Converts view objects into plain dicts/lists of primitives for the
rendering boundary. Not an export format: field names follow the view
contracts and may change with them.

Instants are ISO-8601 strings (UTC), points are [x, y], rects are
{left, top, width, height}. Layout nodes are matched exhaustively on
their `kind`.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .contracts.base import Error, Result
from .contracts.geometry import LineSegment, Point, Rect
from .contracts.views import (
    BubbleData, FlowCurve, FlowLayout, LayoutNode,
    NodeKind, RiverFlowIntersection, RiverFlowNode, RiverFlowPath,
)


def _instant(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _point(point: Optional[Point]) -> Optional[List[float]]:
    return [point.x, point.y] if point is not None else None


def _rect(rect: Optional[Rect]) -> Optional[Dict[str, float]]:
    if rect is None:
        return None
    return {'left': rect.left, 'top': rect.top, 'width': rect.width, 'height': rect.height}


def _segment(line: Optional[LineSegment]) -> Optional[Dict[str, List[float]]]:
    if line is None:
        return None
    return {'start': _point(line.start), 'end': _point(line.end)}


class ViewMapper:
    """Stateless mapper from view contracts to primitives."""

    def bubble(self, bubble: BubbleData) -> Dict[str, Any]:
        return {
            'id': bubble.bubble_id,
            'tier': bubble.tier.value,
            'start': _instant(bubble.start),
            'end': _instant(bubble.end),
            'event_count': bubble.event_count,
            'dominant_category': bubble.dominant_category,
            'person_counts': dict(bubble.person_counts),
            'participant_ids': list(bubble.participant_ids),
            'event_ids': list(bubble.event_ids),
            'label': bubble.label,
            'size_multiplier': bubble.size_multiplier,
            'color': bubble.color,
        }

    def bubbles(self, bubbles: Iterable[BubbleData]) -> List[Dict[str, Any]]:
        return [self.bubble(b) for b in bubbles]

    def layout_node(self, node: LayoutNode) -> Dict[str, Any]:
        common = {
            'kind': node.kind.value,
            'id': node.node_id,
            'tier': node.tier.value,
            'position': node.position,
            'marker_center': _point(node.marker_center),
            'marker_radius': node.marker_radius,
            'card_rect': _rect(node.card_rect),
            'connector': _segment(node.connector),
            'label_visible': node.is_label_visible,
        }
        if node.kind is NodeKind.EVENT:
            common.update({
                'event_type': node.event_type,
                'time': _instant(node.time),
                'title': node.title,
                'has_media': node.has_media,
            })
        elif node.kind is NodeKind.CLUSTER:
            common.update({
                'count': node.count,
                'dominant_type': node.dominant_type,
                'member_event_ids': list(node.member_event_ids),
                'start': _instant(node.start),
                'end': _instant(node.end),
                'label': node.label,
            })
        else:
            raise ValueError(f"Unknown layout node kind: {node.kind}")
        return common

    def layout_nodes(self, nodes: Iterable[LayoutNode]) -> List[Dict[str, Any]]:
        return [self.layout_node(n) for n in nodes]

    def curve(self, curve: FlowCurve) -> Dict[str, Any]:
        return {
            'start': _point(curve.start),
            'segments': [
                {
                    'control1': _point(s.control1),
                    'control2': _point(s.control2),
                    'end': _point(s.end),
                }
                for s in curve.segments
            ],
        }

    def flow_node(self, node: RiverFlowNode) -> Dict[str, Any]:
        return {
            'event_id': node.event_id,
            'position': _point(node.position),
            'is_junction': node.is_junction,
            'participant_ids': list(node.participant_ids),
            'converging_person_ids': list(node.converging_person_ids),
            'blend_colors': list(node.blend_colors),
            'stroke_width': node.stroke_width,
        }

    def flow_path(self, path: RiverFlowPath) -> Dict[str, Any]:
        return {
            'person_id': path.person_id,
            'color': path.color,
            'lane_index': path.lane_index,
            'nodes': [self.flow_node(n) for n in path.nodes],
            'path': self.curve(path.path),
        }

    def intersection(self, intersection: RiverFlowIntersection) -> Dict[str, Any]:
        return {
            'event_id': intersection.event_id,
            'position': _point(intersection.position),
            'person_ids': list(intersection.person_ids),
            'colors': list(intersection.colors),
            'stroke_width': intersection.stroke_width,
        }

    def flow_layout(self, layout: FlowLayout) -> Dict[str, Any]:
        return {
            'paths': [self.flow_path(p) for p in layout.paths],
            'intersections': [self.intersection(i) for i in layout.intersections],
            'lane_order': list(layout.lane_order),
            'excluded_event_ids': list(layout.excluded_event_ids),
        }

    def error(self, error: Error) -> Dict[str, Any]:
        return {
            'code': error.code.name,
            'message': error.message,
            'context': dict(error.context),
        }

    def result(self, result: Result, value_mapper=None) -> Dict[str, Any]:
        """{'ok': True, 'value': ...} or {'ok': False, 'error': {...}}."""
        if result.is_failure:
            return {'ok': False, 'error': self.error(result.error)}
        value = result.value
        return {'ok': True, 'value': value_mapper(value) if value_mapper else value}
