"""
Timeline Layout & Aggregation Engine

Turns an unordered collection of dated life events into renderable
geometry:

- Bubble view: calendar buckets per zoom tier (aggregation)
- Axis view: markers, clusters and cards along one axis (layout)
- River view: one stream per person, converging at shared events (flow)

plus the mutation service (merge / split / move / key asset) and asset
ingestion (burst and proximity clustering), whose results are committed
atomically to a versioned event collection.

Every view is a pure function of the events and the view parameters.
"""

# contracts first: the view contracts and the temporal layer import each other
from .contracts import (
    ErrorCode, Error, Result, ResultError,
    EventType, AssetType, AttributeKind, AttributeValue,
    FuzzyGranularity, Season, FuzzyDate, GeoLocation, MediaAsset, TimelineEvent,
    Point, Size, Rect, LineSegment,
    Orientation, DisplayMode, NodeKind,
    BubbleData, AggregationResult,
    VisibleRange, EventCandidate, ClusterCandidate, EventNode, ClusterNode,
    FlowCurve, RiverFlowNode, RiverFlowPath, RiverFlowIntersection, FlowLayout,
)
from .temporal import (
    ZoomTier, tier_for_zoom_level, pixels_per_day_for_zoom_level,
    date_to_position, position_to_date, resolve_event_time,
)
from .aggregation import AggregationConfig, BubbleAggregator, aggregate
from .layout import (
    DEFAULT_DENSITY_THRESHOLDS, LayoutConfig, TimelineLayoutEngine,
    build_render_nodes, render_nodes_from_events,
)
from .flow import FlowConfig, LaneStrategy, RiverFlowBuilder, build_flows, color_for_person
from .mutation import EventMutationService, MutationConfig, select_key_asset
from .ingestion import (
    AssetClusterer, AssetClusteringConfig, ClusteringResult, ContextType, MediaCluster,
)
from .store import ChangeSet, EventCollection
from .observability import ObservabilityConfig, ObservabilityEngine
from .caching import CacheConfig, ViewKey, ViewMemo
from .scheduling import BackgroundViewWorker, ViewTicket
from .config import EngineConfig
from .engine import TimelineEngine
from .presentation import ViewMapper

__version__ = "1.0.0"

__all__ = [
    # Contracts
    'ErrorCode', 'Error', 'Result', 'ResultError',
    'EventType', 'AssetType', 'AttributeKind', 'AttributeValue',
    'FuzzyGranularity', 'Season', 'FuzzyDate', 'GeoLocation', 'MediaAsset', 'TimelineEvent',
    'Point', 'Size', 'Rect', 'LineSegment',
    'Orientation', 'DisplayMode', 'NodeKind',
    'BubbleData', 'AggregationResult',
    'VisibleRange', 'EventCandidate', 'ClusterCandidate', 'EventNode', 'ClusterNode',
    'FlowCurve', 'RiverFlowNode', 'RiverFlowPath', 'RiverFlowIntersection', 'FlowLayout',
    # Temporal
    'ZoomTier', 'tier_for_zoom_level', 'pixels_per_day_for_zoom_level',
    'date_to_position', 'position_to_date', 'resolve_event_time',
    # Engines
    'AggregationConfig', 'BubbleAggregator', 'aggregate',
    'DEFAULT_DENSITY_THRESHOLDS', 'LayoutConfig', 'TimelineLayoutEngine',
    'build_render_nodes', 'render_nodes_from_events',
    'FlowConfig', 'LaneStrategy', 'RiverFlowBuilder', 'build_flows', 'color_for_person',
    'EventMutationService', 'MutationConfig', 'select_key_asset',
    'AssetClusterer', 'AssetClusteringConfig', 'ClusteringResult', 'ContextType', 'MediaCluster',
    # Store, caching, scheduling
    'ChangeSet', 'EventCollection',
    'ObservabilityConfig', 'ObservabilityEngine',
    'CacheConfig', 'ViewKey', 'ViewMemo',
    'BackgroundViewWorker', 'ViewTicket',
    'EngineConfig', 'TimelineEngine', 'ViewMapper',
]
