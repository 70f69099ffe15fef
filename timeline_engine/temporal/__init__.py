"""
Temporal Layer

Zoom tiers, calendar-aligned buckets and date resolution shared by
every layout engine.
"""

from .tiers import (
    ZoomTier, TierSpec, TIER_SPECS, LATEST_INSTANT,
    align_to_bucket, next_bucket_start, bucket_label, bucket_key,
    tier_for_zoom_level, pixels_per_day_for_zoom_level,
    date_to_position, position_to_date,
)
from .resolution import (
    ResolvedEvents, fuzzy_interval, fuzzy_midpoint,
    resolve_event_time, resolve_events,
)

__all__ = [
    'ZoomTier', 'TierSpec', 'TIER_SPECS', 'LATEST_INSTANT',
    'align_to_bucket', 'next_bucket_start', 'bucket_label', 'bucket_key',
    'tier_for_zoom_level', 'pixels_per_day_for_zoom_level',
    'date_to_position', 'position_to_date',
    'ResolvedEvents', 'fuzzy_interval', 'fuzzy_midpoint',
    'resolve_event_time', 'resolve_events',
]
