"""
Contracts Module

Explicit data types shared by all engine layers. Engines communicate
ONLY through these types.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. Failures are explicit Error values inside Result
3. All instants are UTC
4. Variants are closed tagged unions with a `kind` discriminator
"""

from .base import ErrorCode, Error, Result, ResultError
from ..timeutil import ensure_utc, days_between, SECONDS_PER_DAY
from .events import (
    EventType, AssetType, AttributeKind, AttributeValue, freeze_attributes,
    FuzzyGranularity, Season, FuzzyDate, GeoLocation, MediaAsset,
    TimelineEvent, all_participant_ids,
)
from .geometry import Point, Size, Rect, LineSegment
from .views import (
    Orientation, DisplayMode, NodeKind,
    BubbleData, AggregationResult,
    VisibleRange, EventCandidate, ClusterCandidate, RenderNode,
    EventNode, ClusterNode, LayoutNode,
    CubicSegment, FlowCurve,
    RiverFlowNode, RiverFlowPath, RiverFlowIntersection, FlowLayout,
)

__all__ = [
    'ErrorCode', 'Error', 'Result', 'ResultError',
    'ensure_utc', 'days_between', 'SECONDS_PER_DAY',
    'EventType', 'AssetType', 'AttributeKind', 'AttributeValue', 'freeze_attributes',
    'FuzzyGranularity', 'Season', 'FuzzyDate', 'GeoLocation', 'MediaAsset',
    'TimelineEvent', 'all_participant_ids',
    'Point', 'Size', 'Rect', 'LineSegment',
    'Orientation', 'DisplayMode', 'NodeKind',
    'BubbleData', 'AggregationResult',
    'VisibleRange', 'EventCandidate', 'ClusterCandidate', 'RenderNode',
    'EventNode', 'ClusterNode', 'LayoutNode',
    'CubicSegment', 'FlowCurve',
    'RiverFlowNode', 'RiverFlowPath', 'RiverFlowIntersection', 'FlowLayout',
]
