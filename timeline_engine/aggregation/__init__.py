"""
Temporal Aggregation Layer

RESPONSIBILITY: Group events into calendar buckets ("bubbles") per tier
ALLOWED INPUTS: TimelineEvent collections, ZoomTier
OUTPUTS: BubbleData (chronological, non-empty buckets only)

WHAT THIS LAYER MUST NOT DO:
============================
- Position anything on screen
- Drop resolvable events
- Fail the whole pass because of one undated event

BOUNDARY ENFORCEMENT:
=====================
- Buckets are half-open [start, end) and never overlap
- Sum of bubble counts == number of resolvable events
- Undated events are excluded and reported, never silently lost
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging
import math

import numpy as np

from ..contracts.events import EventType, TimelineEvent
from ..contracts.views import AggregationResult, BubbleData
from ..observability import AuditEventType, ObservabilityEngine
from ..temporal.resolution import resolve_events
from ..temporal.tiers import (
    ZoomTier, align_to_bucket, bucket_key, bucket_label, next_bucket_start
)

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_COLORS: Dict[str, str] = {
    EventType.PHOTO.value: "#6366F1",             # Indigo
    EventType.VIDEO.value: "#10B981",             # Emerald
    EventType.MILESTONE.value: "#EC4899",         # Pink
    EventType.TEXT.value: "#8B5CF6",              # Violet
    EventType.LOCATION.value: "#14B8A6",          # Teal
    EventType.GENERAL.value: "#F59E0B",           # Amber
    EventType.PHOTO_BURST.value: "#3B82F6",       # Blue
    EventType.PHOTO_COLLECTION.value: "#F43F5E",  # Rose
}

FALLBACK_CATEGORY_COLOR = "#64748B"  # Slate


def dominant_category(categories: Iterable[str]) -> str:
    """
    Majority vote over categories.

    Ties go to the category seen first, so callers pass categories in
    chronological order.
    """
    counts: Dict[str, int] = {}
    first_seen: Dict[str, int] = {}
    for index, category in enumerate(categories):
        counts[category] = counts.get(category, 0) + 1
        first_seen.setdefault(category, index)
    if not counts:
        raise ValueError("dominant_category requires at least one category")
    return min(counts, key=lambda c: (-counts[c], first_seen[c]))


def size_multipliers(
    counts: Iterable[int],
    min_multiplier: float,
    max_multiplier: float
) -> List[float]:
    """
    Square-root scale of counts into [min_multiplier, max_multiplier].

    The largest count maps to max_multiplier; smaller counts shrink with
    the square root of their share so bubble area stays readable.
    """
    values = np.asarray(list(counts), dtype=float)
    if values.size == 0:
        return []
    ratio = np.sqrt(values / values.max())
    scaled = min_multiplier + (max_multiplier - min_multiplier) * ratio
    return [float(v) for v in scaled]


@dataclass
class AggregationConfig:
    """Configuration for bubble aggregation."""
    min_size_multiplier: float = 0.6
    max_size_multiplier: float = 1.4
    category_colors: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_COLORS)
    )
    fallback_color: str = FALLBACK_CATEGORY_COLOR

    def __post_init__(self):
        for name in ("min_size_multiplier", "max_size_multiplier"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number")
        if self.min_size_multiplier > self.max_size_multiplier:
            raise ValueError("min_size_multiplier must not exceed max_size_multiplier")

    def color_for(self, category: str) -> str:
        return self.category_colors.get(category, self.fallback_color)


@dataclass
class _Bucket:
    start: datetime
    events: List[TimelineEvent] = field(default_factory=list)


class BubbleAggregator:
    """
    Groups events into calendar-aligned buckets and summarizes each.

    Stateless apart from its configuration: same events + same tier
    = identical bubbles.
    """

    def __init__(
        self,
        config: Optional[AggregationConfig] = None,
        observability: Optional[ObservabilityEngine] = None
    ):
        self._config = config or AggregationConfig()
        self._observability = observability

    @property
    def config(self) -> AggregationConfig:
        return self._config

    def aggregate(self, events: Iterable[TimelineEvent], tier: ZoomTier) -> List[BubbleData]:
        """Bubbles for `events` at `tier`, chronological by bucket start."""
        return list(self.aggregate_with_diagnostics(events, tier).bubbles)

    def aggregate_with_diagnostics(
        self,
        events: Iterable[TimelineEvent],
        tier: ZoomTier
    ) -> AggregationResult:
        """Bubbles plus the ids of events that had no resolvable date."""
        if not isinstance(tier, ZoomTier):
            raise TypeError(f"tier must be a ZoomTier, got {type(tier).__name__}")

        if self._observability:
            with self._observability.measure("aggregation_duration_ms", {"tier": tier.value}):
                result = self._aggregate(events, tier)
            self._observability.record_exclusions("aggregation", result.excluded_event_ids)
            self._observability.log_audit(
                layer="aggregation",
                action="aggregate",
                event_type=AuditEventType.AGGREGATION,
                tier=tier.value,
                bubbles=str(len(result.bubbles))
            )
        else:
            result = self._aggregate(events, tier)
            if result.excluded_event_ids:
                logger.warning(
                    "aggregation: excluded %d event(s) without a resolvable date",
                    result.excluded_count
                )
        return result

    def _aggregate(self, events: Iterable[TimelineEvent], tier: ZoomTier) -> AggregationResult:
        resolved = resolve_events(events)

        # resolved.placed is chronological, so buckets fill in order
        buckets: Dict[datetime, _Bucket] = {}
        for event, instant in resolved.placed:
            start = align_to_bucket(instant, tier)
            bucket = buckets.get(start)
            if bucket is None:
                bucket = buckets[start] = _Bucket(start=start)
            bucket.events.append(event)

        ordered = [buckets[start] for start in sorted(buckets)]
        multipliers = size_multipliers(
            (len(b.events) for b in ordered),
            self._config.min_size_multiplier,
            self._config.max_size_multiplier
        )

        bubbles = tuple(
            self._summarize(bucket, tier, multiplier)
            for bucket, multiplier in zip(ordered, multipliers)
        )
        logger.debug(
            "aggregated %d event(s) into %d %s bubble(s)",
            len(resolved.placed), len(bubbles), tier.value
        )
        return AggregationResult(
            bubbles=bubbles,
            excluded_event_ids=resolved.excluded_event_ids
        )

    def _summarize(self, bucket: _Bucket, tier: ZoomTier, multiplier: float) -> BubbleData:
        category = dominant_category(e.event_type for e in bucket.events)

        person_counts: Dict[str, int] = {}
        for event in bucket.events:
            for person_id in event.participant_ids:
                person_counts[person_id] = person_counts.get(person_id, 0) + 1

        return BubbleData(
            bubble_id=bucket_key(bucket.start, tier),
            tier=tier,
            start=bucket.start,
            end=next_bucket_start(bucket.start, tier),
            event_count=len(bucket.events),
            dominant_category=category,
            person_counts=tuple(sorted(person_counts.items())),
            participant_ids=tuple(sorted(person_counts)),
            event_ids=tuple(e.id for e in bucket.events),
            label=bucket_label(bucket.start, tier),
            size_multiplier=multiplier,
            color=self._config.color_for(category)
        )


def aggregate(events: Iterable[TimelineEvent], tier: ZoomTier) -> List[BubbleData]:
    """Aggregate with the default configuration."""
    return BubbleAggregator().aggregate(events, tier)


__all__ = [
    'AggregationConfig',
    'BubbleAggregator',
    'DEFAULT_CATEGORY_COLORS',
    'FALLBACK_CATEGORY_COLOR',
    'aggregate',
    'dominant_category',
    'size_multipliers',
]
