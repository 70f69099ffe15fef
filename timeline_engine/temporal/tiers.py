"""
Tier / Zoom Model
=================

Shared zoom-tier enumeration and its size/duration mapping.

GUARANTEES:
- Tiers are totally ordered, coarsest (YEAR) to finest (FOCUS)
- Bucket boundaries are calendar aligned and in UTC
- Every mapping here is a pure function of its arguments
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict
from enum import Enum

from ..timeutil import SECONDS_PER_DAY, days_between, ensure_utc


class ZoomTier(Enum):
    """Semantic zoom tier, coarsest first."""
    YEAR = "year"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    FOCUS = "focus"

    @property
    def rank(self) -> int:
        """0 for the coarsest tier, increasing toward FOCUS."""
        return _TIER_ORDER.index(self)

    @property
    def spec(self) -> TierSpec:
        return TIER_SPECS[self]

    def is_coarser_than(self, other: ZoomTier) -> bool:
        return self.rank < other.rank

    def __lt__(self, other):
        if not isinstance(other, ZoomTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, ZoomTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, ZoomTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, ZoomTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_ORDER = (
    ZoomTier.YEAR, ZoomTier.MONTH, ZoomTier.WEEK, ZoomTier.DAY, ZoomTier.FOCUS
)


@dataclass(frozen=True)
class TierSpec:
    """
    Size and duration parameters of one tier.

    marker_scale: marker radius multiplier, larger for coarser tiers
    min_marker_spacing: pixels; closer markers are merged into a cluster
    """
    bucket_duration: timedelta
    marker_scale: float
    min_marker_spacing: float


TIER_SPECS: Dict[ZoomTier, TierSpec] = {
    ZoomTier.YEAR: TierSpec(timedelta(days=365), marker_scale=1.6, min_marker_spacing=48.0),
    ZoomTier.MONTH: TierSpec(timedelta(days=30), marker_scale=1.4, min_marker_spacing=40.0),
    ZoomTier.WEEK: TierSpec(timedelta(days=7), marker_scale=1.2, min_marker_spacing=32.0),
    ZoomTier.DAY: TierSpec(timedelta(days=1), marker_scale=1.0, min_marker_spacing=24.0),
    ZoomTier.FOCUS: TierSpec(timedelta(hours=1), marker_scale=0.9, min_marker_spacing=16.0),
}


_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def month_name(month: int) -> str:
    return _MONTH_NAMES[month - 1]


# =============================================================================
# BUCKET ALIGNMENT
# =============================================================================

LATEST_INSTANT = datetime.max.replace(tzinfo=timezone.utc)


def align_to_bucket(instant: datetime, tier: ZoomTier) -> datetime:
    """
    Start of the bucket containing `instant`.

    YEAR  -> Jan 1, MONTH -> the 1st, WEEK -> Monday,
    DAY   -> midnight, FOCUS -> top of the hour.
    """
    t = ensure_utc(instant)
    if tier is ZoomTier.YEAR:
        return t.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    if tier is ZoomTier.MONTH:
        return t.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if tier is ZoomTier.WEEK:
        midnight = t.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - timedelta(days=midnight.weekday())
    if tier is ZoomTier.DAY:
        return t.replace(hour=0, minute=0, second=0, microsecond=0)
    return t.replace(minute=0, second=0, microsecond=0)


def next_bucket_start(bucket_start: datetime, tier: ZoomTier) -> datetime:
    """
    Calendar-correct start of the following bucket.

    The last bucket before the datetime ceiling ends at `LATEST_INSTANT`.
    """
    start = ensure_utc(bucket_start)
    try:
        if tier is ZoomTier.YEAR:
            return start.replace(year=start.year + 1)
        if tier is ZoomTier.MONTH:
            if start.month == 12:
                return start.replace(year=start.year + 1, month=1)
            return start.replace(month=start.month + 1)
        return start + tier.spec.bucket_duration
    except (ValueError, OverflowError):
        return LATEST_INSTANT


def bucket_label(bucket_start: datetime, tier: ZoomTier) -> str:
    """Human-readable description of a bucket."""
    start = ensure_utc(bucket_start)
    if tier is ZoomTier.YEAR:
        return str(start.year)
    if tier is ZoomTier.MONTH:
        return f"{month_name(start.month)} {start.year}"
    if tier is ZoomTier.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"Week {iso_week}, {iso_year}"
    if tier is ZoomTier.DAY:
        return f"{month_name(start.month)} {start.day}, {start.year}"
    return f"{month_name(start.month)} {start.day}, {start.year} {start.hour:02d}:00"


def bucket_key(bucket_start: datetime, tier: ZoomTier) -> str:
    """Stable string key for a bucket."""
    return f"{tier.value}_{ensure_utc(bucket_start).strftime('%Y%m%dT%H')}"


# =============================================================================
# ZOOM LEVEL MAPPING (continuous zoom -> tier / scale)
# =============================================================================

MIN_PIXELS_PER_DAY = 0.2
MAX_PIXELS_PER_DAY = 60.0


def _check_zoom_level(zoom_level: float):
    if not 0.0 <= zoom_level <= 1.0:
        raise ValueError(f"zoom_level must be between 0.0 and 1.0, got {zoom_level}")


def tier_for_zoom_level(zoom_level: float) -> ZoomTier:
    """Semantic tier for a continuous zoom level in [0, 1]."""
    _check_zoom_level(zoom_level)
    if zoom_level < 0.20:
        return ZoomTier.YEAR
    if zoom_level < 0.40:
        return ZoomTier.MONTH
    if zoom_level < 0.60:
        return ZoomTier.WEEK
    if zoom_level < 0.85:
        return ZoomTier.DAY
    return ZoomTier.FOCUS


def pixels_per_day_for_zoom_level(zoom_level: float) -> float:
    """Linear interpolation between MIN and MAX pixels per day."""
    _check_zoom_level(zoom_level)
    return MIN_PIXELS_PER_DAY + (MAX_PIXELS_PER_DAY - MIN_PIXELS_PER_DAY) * zoom_level


def date_to_position(date: datetime, min_date: datetime, pixels_per_day: float) -> float:
    """Offset along the primary axis for a date."""
    return days_between(min_date, date) * pixels_per_day


def position_to_date(position: float, min_date: datetime, pixels_per_day: float) -> datetime:
    """Inverse of date_to_position."""
    if pixels_per_day <= 0:
        raise ValueError("pixels_per_day must be positive")
    seconds = position / pixels_per_day * SECONDS_PER_DAY
    return ensure_utc(min_date) + timedelta(seconds=seconds)
