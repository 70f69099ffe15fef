"""
Density Pre-Clustering
======================

Turns events into layout candidates, folding crowded calendar buckets
into ClusterCandidates before overlap resolution.

RULES:
- Only events inside the visible range are considered
- At YEAR, MONTH, WEEK and DAY a bucket holding MORE events than the
  tier's threshold becomes one ClusterCandidate whose id is the bucket key
- A bucket whose id is listed as expanded passes through event by event
- FOCUS never pre-clusters
"""

from __future__ import annotations
from datetime import datetime
from itertools import groupby
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ..contracts.events import TimelineEvent
from ..contracts.views import ClusterCandidate, EventCandidate, RenderNode, VisibleRange
from ..temporal.resolution import resolve_events
from ..temporal.tiers import ZoomTier, align_to_bucket, bucket_key

DEFAULT_DENSITY_THRESHOLDS: Dict[ZoomTier, int] = {
    ZoomTier.YEAR: 20,
    ZoomTier.MONTH: 30,
    ZoomTier.WEEK: 15,
    ZoomTier.DAY: 8,
}


def event_candidate(event: TimelineEvent, instant: datetime) -> EventCandidate:
    return EventCandidate(
        event_id=event.id,
        time=instant,
        event_type=event.event_type,
        title=event.title or "Untitled Event",
        has_media=event.has_media,
        tags=event.tags
    )


def build_render_nodes(
    events: Iterable[TimelineEvent],
    tier: ZoomTier,
    visible_range: Optional[VisibleRange] = None,
    expanded_cluster_ids: Iterable[str] = (),
    thresholds: Optional[Mapping[ZoomTier, int]] = None
) -> Tuple[Tuple[RenderNode, ...], Tuple[str, ...]]:
    """
    Chronological candidates for one layout pass.

    Returns (candidates, excluded_event_ids); events outside the visible
    range are dropped silently, events with no resolvable date are
    excluded and reported.
    """
    if not isinstance(tier, ZoomTier):
        raise TypeError(f"tier must be a ZoomTier, got {type(tier).__name__}")
    limits = DEFAULT_DENSITY_THRESHOLDS if thresholds is None else thresholds
    expanded = set(expanded_cluster_ids)

    resolved = resolve_events(events)
    placed = [
        (event, instant) for event, instant in resolved.placed
        if visible_range is None or visible_range.contains(instant)
    ]

    threshold = limits.get(tier)
    if threshold is None:
        candidates = tuple(event_candidate(e, t) for e, t in placed)
        return candidates, resolved.excluded_event_ids

    candidates = []
    # placed is chronological, so each bucket is one contiguous run
    for start, run in groupby(placed, key=lambda item: align_to_bucket(item[1], tier)):
        members = list(run)
        cluster_id = bucket_key(start, tier)
        if len(members) <= threshold or cluster_id in expanded:
            candidates.extend(event_candidate(e, t) for e, t in members)
            continue
        candidates.append(ClusterCandidate(
            cluster_id=cluster_id,
            start=members[0][1],
            end=members[-1][1],
            member_event_ids=tuple(e.id for e, _ in members),
            member_types=tuple(e.event_type for e, _ in members)
        ))
    return tuple(candidates), resolved.excluded_event_ids
