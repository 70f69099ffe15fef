"""
View Contracts

Renderable outputs of the aggregation, layout and flow engines.

DETERMINISTIC:
==============
Same events + same view parameters = identical view objects.
No layout logic is allowed in the rendering layer - everything it
needs (positions, radii, card rects, curve control points, colors)
is pre-calculated here.

TAGGED UNIONS:
==============
LayoutNode = EventNode | ClusterNode, RenderNode = EventCandidate |
ClusterCandidate. Each variant carries a `kind` discriminator so
consumers can match exhaustively.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple, Union
from enum import Enum

import numpy as np

from ..temporal.tiers import ZoomTier
from ..timeutil import ensure_utc
from .events import TimelineEvent
from .geometry import LineSegment, Point, Rect


# =============================================================================
# VIEW PARAMETERS
# =============================================================================

class Orientation(Enum):
    """Axis direction of the single-axis layout."""
    VERTICAL = "vertical"       # Time flows top -> bottom
    HORIZONTAL = "horizontal"   # Time flows left -> right


class DisplayMode(Enum):
    """Display density."""
    MINIMAL = "minimal"   # Markers and labels only
    MAXIMAL = "maximal"   # Markers, cards and connectors


class NodeKind(Enum):
    EVENT = "event"
    CLUSTER = "cluster"


# =============================================================================
# BUBBLE VIEW
# =============================================================================

@dataclass(frozen=True)
class BubbleData:
    """
    Aggregated summary of one time bucket.

    The bucket is the half-open interval [start, end).
    """
    bubble_id: str
    tier: ZoomTier
    start: datetime
    end: datetime
    event_count: int
    dominant_category: str
    person_counts: Tuple[Tuple[str, int], ...]
    participant_ids: Tuple[str, ...]
    event_ids: Tuple[str, ...]
    label: str
    size_multiplier: float
    color: str

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("BubbleData start must not be after end")
        if self.event_count <= 0:
            raise ValueError("BubbleData must contain at least one event")

    @property
    def person_counts_dict(self) -> Dict[str, int]:
        return dict(self.person_counts)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@dataclass(frozen=True)
class AggregationResult:
    """Bubbles plus the events that could not be placed."""
    bubbles: Tuple[BubbleData, ...]
    excluded_event_ids: Tuple[str, ...] = ()

    @property
    def excluded_count(self) -> int:
        return len(self.excluded_event_ids)


# =============================================================================
# AXIS VIEW - INPUT CANDIDATES
# =============================================================================

@dataclass(frozen=True)
class VisibleRange:
    """The half-open window [start, end) of the axis currently on screen."""
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, 'start', ensure_utc(self.start))
        object.__setattr__(self, 'end', ensure_utc(self.end))
        if self.start >= self.end:
            raise ValueError("VisibleRange start must be before end")

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_utc(instant) < self.end


@dataclass(frozen=True)
class EventCandidate:
    """One event, before overlap resolution."""
    event_id: str
    time: datetime
    event_type: str
    title: str = "Untitled Event"
    has_media: bool = False
    tags: Tuple[str, ...] = ()
    kind: NodeKind = field(default=NodeKind.EVENT, init=False)

    @property
    def node_id(self) -> str:
        return self.event_id

    @property
    def member_event_ids(self) -> Tuple[str, ...]:
        return (self.event_id,)

    @property
    def member_types(self) -> Tuple[str, ...]:
        return (self.event_type,)


@dataclass(frozen=True)
class ClusterCandidate:
    """
    Events already grouped upstream (e.g. a photo burst).

    member_event_ids and member_types are parallel tuples in
    chronological order.
    """
    cluster_id: str
    start: datetime
    end: datetime
    member_event_ids: Tuple[str, ...]
    member_types: Tuple[str, ...]
    kind: NodeKind = field(default=NodeKind.CLUSTER, init=False)

    def __post_init__(self):
        if not self.member_event_ids:
            raise ValueError("ClusterCandidate requires at least one member")
        if len(self.member_event_ids) != len(self.member_types):
            raise ValueError("member_event_ids and member_types must align")
        if self.start > self.end:
            raise ValueError("ClusterCandidate start must not be after end")

    @property
    def node_id(self) -> str:
        return self.cluster_id

    @property
    def time(self) -> datetime:
        return self.start


RenderNode = Union[EventCandidate, ClusterCandidate]


# =============================================================================
# AXIS VIEW - LAYOUT OUTPUT
# =============================================================================

@dataclass(frozen=True)
class EventNode:
    """A single event marker placed on the axis."""
    event_id: str
    tier: ZoomTier
    position: float             # 1-D offset along the axis
    event_type: str
    time: datetime
    marker_center: Point
    marker_radius: float
    title: str = "Untitled Event"
    has_media: bool = False
    card_rect: Optional[Rect] = None        # maximal mode only
    connector: Optional[LineSegment] = None  # maximal mode only
    is_label_visible: bool = True
    kind: NodeKind = field(default=NodeKind.EVENT, init=False)

    @property
    def node_id(self) -> str:
        return self.event_id

    @property
    def member_event_ids(self) -> Tuple[str, ...]:
        return (self.event_id,)


@dataclass(frozen=True)
class ClusterNode:
    """A synthetic marker standing for events that would overlap."""
    cluster_id: str
    tier: ZoomTier
    position: float
    count: int
    dominant_type: str
    member_event_ids: Tuple[str, ...]
    start: datetime
    end: datetime
    marker_center: Point
    marker_radius: float
    card_rect: Optional[Rect] = None
    connector: Optional[LineSegment] = None
    is_label_visible: bool = True
    kind: NodeKind = field(default=NodeKind.CLUSTER, init=False)

    def __post_init__(self):
        if not self.member_event_ids:
            raise ValueError("ClusterNode requires at least one member")
        if self.count != len(self.member_event_ids):
            raise ValueError("ClusterNode count must equal its member count")

    @property
    def node_id(self) -> str:
        return self.cluster_id

    @property
    def label(self) -> str:
        return f"{self.count} events"


LayoutNode = Union[EventNode, ClusterNode]


# =============================================================================
# RIVER VIEW
# =============================================================================

@dataclass(frozen=True)
class CubicSegment:
    """Cubic Bezier segment; starts where the previous one ended."""
    control1: Point
    control2: Point
    end: Point


@dataclass(frozen=True)
class FlowCurve:
    """A continuous curve: a start point followed by cubic segments."""
    start: Optional[Point]
    segments: Tuple[CubicSegment, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.start is None

    @property
    def anchor_points(self) -> Tuple[Point, ...]:
        """The points the curve passes through."""
        if self.start is None:
            return ()
        return (self.start,) + tuple(s.end for s in self.segments)

    def sample(self, samples_per_segment: int = 16) -> np.ndarray:
        """
        Flatten the curve into an (N, 2) array of points.

        Each segment contributes `samples_per_segment` points; the curve's
        start point comes first, so N = 1 + segments * samples_per_segment.
        """
        if samples_per_segment < 1:
            raise ValueError("samples_per_segment must be at least 1")
        if self.start is None:
            return np.empty((0, 2))

        t = np.linspace(0.0, 1.0, samples_per_segment + 1)[1:, None]
        chunks = [np.array([[self.start.x, self.start.y]])]
        previous = self.start
        for segment in self.segments:
            p0 = np.array([previous.x, previous.y])
            p1 = np.array([segment.control1.x, segment.control1.y])
            p2 = np.array([segment.control2.x, segment.control2.y])
            p3 = np.array([segment.end.x, segment.end.y])
            chunks.append(
                (1 - t) ** 3 * p0
                + 3 * (1 - t) ** 2 * t * p1
                + 3 * (1 - t) * t ** 2 * p2
                + t ** 3 * p3
            )
            previous = segment.end
        return np.vstack(chunks)


@dataclass(frozen=True)
class RiverFlowNode:
    """
    One event on one person's stream.

    is_junction follows the source event (>= 2 participants).
    converging_person_ids lists the selected people whose streams meet
    here; their nodes for this event share one position.
    """
    event: TimelineEvent
    position: Point
    is_junction: bool
    participant_ids: Tuple[str, ...]
    converging_person_ids: Tuple[str, ...] = ()
    blend_colors: Tuple[str, ...] = ()
    stroke_width: float = 4.0

    @property
    def event_id(self) -> str:
        return self.event.id

    @property
    def is_convergence(self) -> bool:
        return len(self.converging_person_ids) >= 2


@dataclass(frozen=True)
class RiverFlowPath:
    """One continuous stream per person."""
    person_id: str
    color: str
    lane_index: int
    nodes: Tuple[RiverFlowNode, ...]
    path: FlowCurve


@dataclass(frozen=True)
class RiverFlowIntersection:
    """Where two or more selected streams meet at a shared event."""
    event_id: str
    position: Point
    person_ids: Tuple[str, ...]
    colors: Tuple[str, ...]
    stroke_width: float


@dataclass(frozen=True)
class FlowLayout:
    """Complete river view."""
    paths: Tuple[RiverFlowPath, ...]
    intersections: Tuple[RiverFlowIntersection, ...] = ()
    excluded_event_ids: Tuple[str, ...] = ()
    lane_order: Tuple[str, ...] = ()

    def path_for(self, person_id: str) -> Optional[RiverFlowPath]:
        for path in self.paths:
            if path.person_id == person_id:
                return path
        return None
