"""
Single-Axis Layout Layer

RESPONSIBILITY: Place events and clusters along one screen axis
ALLOWED INPUTS: RenderNode candidates, view parameters
OUTPUTS: Result[Tuple[LayoutNode, ...]]

WHAT THIS LAYER MUST NOT DO:
============================
- Reorder events (position is monotonic in time)
- Keep state between calls (every pass starts from scratch)
- Draw anything

BOUNDARY ENFORCEMENT:
=====================
- Invalid scale -> failure Result (INVALID_CONFIGURATION)
- Negative viewport -> ValueError (contract violation)
- Empty input -> success with an empty tuple
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import math

from ..contracts.base import ErrorCode, Result
from ..contracts.events import TimelineEvent
from ..contracts.geometry import LineSegment, Point, Rect, Size
from ..contracts.views import (
    ClusterNode, DisplayMode, EventCandidate, EventNode, LayoutNode,
    Orientation, RenderNode, VisibleRange,
)
from ..observability import AuditEventType, ObservabilityEngine
from ..temporal.resolution import resolve_events
from ..temporal.tiers import ZoomTier, date_to_position
from ..timeutil import ensure_utc
from .cards import CardMetrics, CardPlacer
from .clustering import CandidateGroup, PlacedCandidate, sweep_clusters
from .density import DEFAULT_DENSITY_THRESHOLDS, build_render_nodes, event_candidate

logger = logging.getLogger(__name__)


@dataclass
class LayoutConfig:
    """
    Configuration for the single-axis layout.

    min_marker_spacing: overrides the tier's spacing when set (pixels)
    density_thresholds: events per calendar bucket above which the bucket
        is pre-clustered; tiers without an entry never pre-cluster
    """
    base_marker_radius: float = 6.0
    max_cluster_scale: float = 2.5
    card_width: float = 280.0
    gutter: float = 24.0
    card_spacing: float = 16.0
    card_height: float = 120.0
    media_card_height: float = 240.0
    cluster_card_height: float = 100.0
    label_spacing: float = 40.0
    min_marker_spacing: Optional[float] = None
    density_thresholds: Dict[ZoomTier, int] = field(
        default_factory=lambda: dict(DEFAULT_DENSITY_THRESHOLDS)
    )

    def __post_init__(self):
        positive = (
            "base_marker_radius", "card_width", "card_height",
            "media_card_height", "cluster_card_height",
        )
        for name in positive:
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number")
        for name in ("gutter", "card_spacing", "label_spacing"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.max_cluster_scale < 1.0:
            raise ValueError("max_cluster_scale must be at least 1.0")
        if self.min_marker_spacing is not None and self.min_marker_spacing < 0:
            raise ValueError("min_marker_spacing must not be negative")
        for tier, threshold in self.density_thresholds.items():
            if not isinstance(tier, ZoomTier) or threshold < 1:
                raise ValueError("density_thresholds maps tiers to counts of at least 1")

    def spacing_for(self, tier: ZoomTier) -> float:
        if self.min_marker_spacing is not None:
            return self.min_marker_spacing
        return tier.spec.min_marker_spacing

    @property
    def card_metrics(self) -> CardMetrics:
        return CardMetrics(
            card_width=self.card_width,
            gutter=self.gutter,
            card_spacing=self.card_spacing
        )


def render_nodes_from_events(
    events: Iterable[TimelineEvent]
) -> Tuple[Tuple[EventCandidate, ...], Tuple[str, ...]]:
    """
    One EventCandidate per resolvable event, chronological.

    Returns (candidates, excluded_event_ids).
    """
    resolved = resolve_events(events)
    candidates = tuple(event_candidate(event, instant) for event, instant in resolved.placed)
    return candidates, resolved.excluded_event_ids


class TimelineLayoutEngine:
    """
    Computes marker positions, clusters and cards for one axis.

    Stateless apart from configuration; safe to call from any thread.
    """

    def __init__(
        self,
        config: Optional[LayoutConfig] = None,
        observability: Optional[ObservabilityEngine] = None
    ):
        self._config = config or LayoutConfig()
        self._observability = observability

    @property
    def config(self) -> LayoutConfig:
        return self._config

    def layout(
        self,
        nodes: Sequence[RenderNode],
        mode: DisplayMode,
        orientation: Orientation,
        viewport_size: Union[Size, Tuple[float, float]],
        pixels_per_day: float,
        min_date: datetime,
        tier: ZoomTier = ZoomTier.DAY
    ) -> Result:
        """
        Lay out `nodes` and return Result[Tuple[LayoutNode, ...]].

        Positions are fractional days since `min_date` times
        `pixels_per_day`; the perpendicular coordinate is the viewport
        centerline.
        """
        if not isinstance(mode, DisplayMode):
            raise TypeError(f"mode must be a DisplayMode, got {type(mode).__name__}")
        if not isinstance(orientation, Orientation):
            raise TypeError(f"orientation must be an Orientation, got {type(orientation).__name__}")
        if not isinstance(tier, ZoomTier):
            raise TypeError(f"tier must be a ZoomTier, got {type(tier).__name__}")
        viewport = viewport_size if isinstance(viewport_size, Size) else Size(*viewport_size)

        if not math.isfinite(pixels_per_day) or pixels_per_day <= 0:
            logger.warning("layout rejected: pixels_per_day=%r", pixels_per_day)
            if self._observability:
                self._observability.log_audit(
                    layer="layout",
                    action="layout",
                    event_type=AuditEventType.ERROR,
                    outcome="rejected",
                    pixels_per_day=str(pixels_per_day)
                )
            return Result.fail(
                ErrorCode.INVALID_CONFIGURATION,
                "pixels_per_day must be a positive finite number",
                pixels_per_day=str(pixels_per_day)
            )

        if not nodes:
            return Result.success(())

        if self._observability:
            labels = {"tier": tier.value, "mode": mode.value}
            with self._observability.measure("layout_duration_ms", labels):
                laid_out = self._layout(nodes, mode, orientation, viewport, pixels_per_day, min_date, tier)
            clusters = sum(1 for n in laid_out if isinstance(n, ClusterNode))
            self._observability.collect_metric("clusters_created", float(clusters))
            self._observability.log_audit(
                layer="layout",
                action="layout",
                event_type=AuditEventType.LAYOUT,
                tier=tier.value,
                mode=mode.value,
                nodes=str(len(laid_out))
            )
        else:
            laid_out = self._layout(nodes, mode, orientation, viewport, pixels_per_day, min_date, tier)
        return Result.success(laid_out)

    def layout_events(
        self,
        events: Iterable[TimelineEvent],
        mode: DisplayMode,
        orientation: Orientation,
        viewport_size: Union[Size, Tuple[float, float]],
        pixels_per_day: float,
        min_date: Optional[datetime] = None,
        tier: ZoomTier = ZoomTier.DAY,
        visible_range: Optional[VisibleRange] = None,
        expanded_cluster_ids: Iterable[str] = ()
    ) -> Tuple[Result, Tuple[str, ...]]:
        """
        Convenience pass straight from events.

        Crowded calendar buckets are pre-clustered per
        `LayoutConfig.density_thresholds` unless listed in
        `expanded_cluster_ids`; events outside `visible_range` are skipped.
        `min_date` defaults to the start of the visible range, else the
        earliest resolvable event. Returns the layout Result and the ids of
        excluded (undated) events.
        """
        if not isinstance(tier, ZoomTier):
            raise TypeError(f"tier must be a ZoomTier, got {type(tier).__name__}")
        candidates, excluded = build_render_nodes(
            events,
            tier,
            visible_range=visible_range,
            expanded_cluster_ids=expanded_cluster_ids,
            thresholds=self._config.density_thresholds
        )
        if self._observability:
            self._observability.record_exclusions("layout", excluded)
        elif excluded:
            logger.warning("layout: excluded %d event(s) without a resolvable date", len(excluded))
        if min_date is None:
            if visible_range is not None:
                min_date = visible_range.start
            elif candidates:
                min_date = candidates[0].time
        result = self.layout(candidates, mode, orientation, viewport_size, pixels_per_day, min_date, tier)
        return result, excluded

    # -------------------------------------------------------------------------

    def _layout(
        self,
        nodes: Sequence[RenderNode],
        mode: DisplayMode,
        orientation: Orientation,
        viewport: Size,
        pixels_per_day: float,
        min_date: datetime,
        tier: ZoomTier
    ) -> Tuple[LayoutNode, ...]:
        origin = ensure_utc(min_date)
        ordered = sorted(
            enumerate(nodes), key=lambda item: (ensure_utc(item[1].time), item[0])
        )
        placed = [
            PlacedCandidate(candidate, date_to_position(candidate.time, origin, pixels_per_day))
            for _, candidate in ordered
        ]
        groups = sweep_clusters(placed, self._config.spacing_for(tier))

        if orientation is Orientation.VERTICAL:
            centerline = viewport.width / 2
        else:
            centerline = viewport.height / 2
        placer = CardPlacer(orientation, centerline, self._config.card_metrics)

        result: List[LayoutNode] = []
        last_label_position: Optional[float] = None
        for group in groups:
            position = group.offset
            if orientation is Orientation.VERTICAL:
                marker = Point(centerline, position)
            else:
                marker = Point(position, centerline)

            card_rect = None
            connector = None
            label_visible = True
            if mode is DisplayMode.MAXIMAL:
                card_rect, connector = placer.place(marker, self._card_height(group))
            else:
                if (last_label_position is not None
                        and position - last_label_position < self._config.label_spacing):
                    label_visible = False
                else:
                    last_label_position = position

            result.append(self._build_node(
                group, tier, position, marker, card_rect, connector, label_visible
            ))

        logger.debug(
            "laid out %d candidate(s) into %d node(s) at %s tier",
            len(nodes), len(result), tier.value
        )
        return tuple(result)

    def _card_height(self, group: CandidateGroup) -> float:
        if group.is_cluster:
            return self._config.cluster_card_height
        candidate = group.members[0].candidate
        if candidate.has_media:
            return self._config.media_card_height
        return self._config.card_height

    def _marker_radius(self, tier: ZoomTier, count: Optional[int] = None) -> float:
        radius = self._config.base_marker_radius * tier.spec.marker_scale
        if count is None:
            return radius
        scale = min(1.0 + math.log2(count), self._config.max_cluster_scale)
        return radius * scale

    def _build_node(
        self,
        group: CandidateGroup,
        tier: ZoomTier,
        position: float,
        marker: Point,
        card_rect: Optional[Rect],
        connector: Optional[LineSegment],
        label_visible: bool
    ) -> LayoutNode:
        if not group.is_cluster:
            candidate = group.members[0].candidate
            return EventNode(
                event_id=candidate.event_id,
                tier=tier,
                position=position,
                event_type=candidate.event_type,
                time=ensure_utc(candidate.time),
                marker_center=marker,
                marker_radius=self._marker_radius(tier),
                title=candidate.title,
                has_media=candidate.has_media,
                card_rect=card_rect,
                connector=connector,
                is_label_visible=label_visible
            )

        member_ids = group.member_event_ids
        return ClusterNode(
            cluster_id=group.cluster_id,
            tier=tier,
            position=position,
            count=len(member_ids),
            dominant_type=group.dominant_type,
            member_event_ids=member_ids,
            start=ensure_utc(group.start),
            end=ensure_utc(group.end),
            marker_center=marker,
            marker_radius=self._marker_radius(tier, len(member_ids)),
            card_rect=card_rect,
            connector=connector,
            is_label_visible=label_visible
        )


__all__ = [
    'DEFAULT_DENSITY_THRESHOLDS',
    'LayoutConfig',
    'TimelineLayoutEngine',
    'build_render_nodes',
    'render_nodes_from_events',
]
