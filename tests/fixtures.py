"""
Test Fixtures

Explicit events and assets with fixed timestamps.
All fixtures are deterministic - no random generation.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple

from timeline_engine.contracts import (
    AssetType, EventType, FuzzyDate, GeoLocation, MediaAsset, Season, TimelineEvent,
)


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

# 2024-03-04 is a Monday
MONDAY = datetime(2024, 3, 4, 9, 0, 0, tzinfo=timezone.utc)
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)
NEXT_MONDAY = MONDAY + timedelta(days=7)
NEXT_MONTH = datetime(2024, 4, 15, 12, 0, 0, tzinfo=timezone.utc)
NEXT_YEAR = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# BUILDERS
# =============================================================================

def make_asset(
    asset_id: str,
    created_at: Optional[datetime] = None,
    is_key: bool = False,
    asset_type: AssetType = AssetType.PHOTO,
    location: Optional[GeoLocation] = None
) -> MediaAsset:
    return MediaAsset(
        id=asset_id,
        asset_type=asset_type,
        local_path=f"/media/{asset_id}.jpg",
        is_key_asset=is_key,
        created_at=created_at,
        location=location
    )


def make_event(
    event_id: str,
    when: Optional[datetime] = MONDAY,
    event_type: str = EventType.TEXT.value,
    assets: Iterable[MediaAsset] = (),
    participants: Iterable[str] = (),
    title: Optional[str] = None,
    tags: Iterable[str] = (),
    fuzzy_date: Optional[FuzzyDate] = None
) -> TimelineEvent:
    return TimelineEvent(
        id=event_id,
        event_type=event_type,
        timestamp=when if fuzzy_date is None else None,
        fuzzy_date=fuzzy_date,
        title=title,
        tags=tuple(tags),
        assets=tuple(assets),
        participant_ids=tuple(participants)
    )


def photo_event(event_id: str, when: datetime, asset_count: int = 3) -> TimelineEvent:
    """Photo event whose assets are one minute apart, none flagged as key."""
    assets = tuple(
        make_asset(f"{event_id}_a{i}", created_at=when + timedelta(minutes=i))
        for i in range(asset_count)
    )
    return make_event(event_id, when, EventType.PHOTO.value, assets=assets)


def undated_event(event_id: str = "undated") -> TimelineEvent:
    return TimelineEvent(id=event_id, event_type=EventType.TEXT.value)


def summer_event(event_id: str = "summer_1998") -> TimelineEvent:
    return make_event(
        event_id, when=None, fuzzy_date=FuzzyDate.for_season(1998, Season.SUMMER)
    )


def family_events() -> Tuple[TimelineEvent, ...]:
    """
    Three people over one week.

    alice: a1, shared_ab, shared_abc
    bob:   b1, shared_ab, shared_abc
    carol: shared_abc, c1
    """
    return (
        make_event("a1", MONDAY, participants=["alice"]),
        make_event("b1", MONDAY + timedelta(hours=2), participants=["bob"]),
        make_event("shared_ab", TUESDAY, EventType.PHOTO.value, participants=["alice", "bob"]),
        make_event("shared_abc", WEDNESDAY, EventType.MILESTONE.value,
                   participants=["alice", "bob", "carol"]),
        make_event("c1", NEXT_MONDAY, participants=["carol"]),
    )
