"""
Event Contracts

The event data model read by every layout engine.

OWNERSHIP:
==========
Events are owned by the application's event store. The engines only read
them; the mutation service produces NEW events, never modifies existing ones.

IMMUTABILITY:
=============
- All types are frozen dataclasses
- Sequences are tuples, maps are tuples of (key, value) pairs
- Validation happens once, in __post_init__
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from enum import Enum
import math

from ..timeutil import ensure_utc


# =============================================================================
# EVENT AND ASSET TYPES
# =============================================================================

class EventType(str, Enum):
    """
    Well-known event types.

    Event types are open-ended strings on TimelineEvent; these members
    compare equal to their string values.
    """
    PHOTO = "photo"
    VIDEO = "video"
    MILESTONE = "milestone"
    TEXT = "text"
    LOCATION = "location"
    GENERAL = "general"
    PHOTO_BURST = "photo_burst"
    PHOTO_COLLECTION = "photo_collection"


class AssetType(Enum):
    """Media asset kinds."""
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


# =============================================================================
# CUSTOM ATTRIBUTES (Tagged union)
# =============================================================================

class AttributeKind(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAP = "map"
    NULL = "null"


@dataclass(frozen=True)
class AttributeValue:
    """
    A custom attribute value.

    Exactly one payload is meaningful, selected by `kind`:
    - STRING  -> text
    - NUMBER  -> number
    - BOOLEAN -> flag
    - LIST    -> items
    - MAP     -> entries (sorted by key)
    - NULL    -> nothing
    """
    kind: AttributeKind
    text: Optional[str] = None
    number: Optional[float] = None
    flag: Optional[bool] = None
    items: Tuple[AttributeValue, ...] = ()
    entries: Tuple[Tuple[str, AttributeValue], ...] = ()

    @staticmethod
    def of(value: Any) -> AttributeValue:
        """Build an attribute value from a plain Python value."""
        if isinstance(value, AttributeValue):
            return value
        if value is None:
            return AttributeValue(kind=AttributeKind.NULL)
        # bool before number: bool is an int subclass
        if isinstance(value, bool):
            return AttributeValue(kind=AttributeKind.BOOLEAN, flag=value)
        if isinstance(value, (int, float)):
            return AttributeValue(kind=AttributeKind.NUMBER, number=float(value))
        if isinstance(value, str):
            return AttributeValue(kind=AttributeKind.STRING, text=value)
        if isinstance(value, Mapping):
            return AttributeValue(
                kind=AttributeKind.MAP,
                entries=tuple(
                    (str(k), AttributeValue.of(v)) for k, v in sorted(value.items())
                )
            )
        if isinstance(value, (list, tuple)):
            return AttributeValue(
                kind=AttributeKind.LIST,
                items=tuple(AttributeValue.of(v) for v in value)
            )
        raise TypeError(f"Unsupported attribute value type: {type(value).__name__}")

    def to_python(self) -> Any:
        """Convert back to a plain Python value."""
        if self.kind is AttributeKind.STRING:
            return self.text
        if self.kind is AttributeKind.NUMBER:
            return self.number
        if self.kind is AttributeKind.BOOLEAN:
            return self.flag
        if self.kind is AttributeKind.LIST:
            return [item.to_python() for item in self.items]
        if self.kind is AttributeKind.MAP:
            return {k: v.to_python() for k, v in self.entries}
        return None


def freeze_attributes(
    attributes: Optional[Mapping[str, Any]]
) -> Tuple[Tuple[str, AttributeValue], ...]:
    """Convert a plain mapping into the immutable attribute representation."""
    if not attributes:
        return ()
    return tuple(
        (str(key), AttributeValue.of(value)) for key, value in attributes.items()
    )


# =============================================================================
# FUZZY DATES
# =============================================================================

class FuzzyGranularity(Enum):
    DECADE = "decade"
    YEAR = "year"
    SEASON = "season"
    MONTH = "month"
    DAY = "day"


class Season(Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class FuzzyDate:
    """
    Approximate date descriptor ("summer 1998", "the 1970s").

    Resolution to an instant lives in temporal.resolution.
    """
    granularity: FuzzyGranularity
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    season: Optional[Season] = None
    display_text: Optional[str] = None

    def __post_init__(self):
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"FuzzyDate month out of range: {self.month}")
        if self.day is not None and not 1 <= self.day <= 31:
            raise ValueError(f"FuzzyDate day out of range: {self.day}")

    @staticmethod
    def for_decade(start_year: int) -> FuzzyDate:
        return FuzzyDate(
            granularity=FuzzyGranularity.DECADE,
            year=start_year,
            display_text=f"{start_year}s"
        )

    @staticmethod
    def for_year(year: int) -> FuzzyDate:
        return FuzzyDate(
            granularity=FuzzyGranularity.YEAR,
            year=year,
            display_text=str(year)
        )

    @staticmethod
    def for_season(year: int, season: Season) -> FuzzyDate:
        return FuzzyDate(
            granularity=FuzzyGranularity.SEASON,
            year=year,
            season=season,
            display_text=f"{season.display_name} {year}"
        )

    @staticmethod
    def for_month(year: int, month: int) -> FuzzyDate:
        return FuzzyDate(granularity=FuzzyGranularity.MONTH, year=year, month=month)

    def __str__(self) -> str:
        return self.display_text or "Unknown date"


# =============================================================================
# LOCATION AND MEDIA
# =============================================================================

EARTH_RADIUS_METERS = 6371000.0


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    name: Optional[str] = None

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def distance_to(self, other: GeoLocation) -> float:
        """Great-circle distance in meters (haversine)."""
        lat1, lat2 = math.radians(self.latitude), math.radians(other.latitude)
        d_lat = lat2 - lat1
        d_lng = math.radians(other.longitude - self.longitude)
        a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
        return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class MediaAsset:
    """A photo, video, audio clip or document attached to an event."""
    id: str
    asset_type: AssetType = AssetType.PHOTO
    local_path: Optional[str] = None
    cloud_url: Optional[str] = None
    is_key_asset: bool = False
    created_at: Optional[datetime] = None
    caption: Optional[str] = None
    location: Optional[GeoLocation] = None     # where the asset was captured

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("MediaAsset id must be a non-empty string")
        if self.created_at is not None:
            object.__setattr__(self, 'created_at', ensure_utc(self.created_at))

    def with_key_flag(self, is_key: bool) -> MediaAsset:
        if self.is_key_asset == is_key:
            return self
        return replace(self, is_key_asset=is_key)


# =============================================================================
# TIMELINE EVENT
# =============================================================================

def _ordered_unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return tuple(ordered)


@dataclass(frozen=True)
class TimelineEvent:
    """
    A dated life event.

    DATING:
    =======
    Exactly one of `timestamp` / `fuzzy_date` may be set. An event with
    neither is valid data but cannot be placed on any timeline; engines
    exclude it and report the exclusion.

    INVARIANTS (checked at construction):
    - timestamp and fuzzy_date are mutually exclusive
    - asset ids are unique within the event
    - at most one asset is the key asset
    """
    id: str
    event_type: str = EventType.GENERAL.value
    timestamp: Optional[datetime] = None
    fuzzy_date: Optional[FuzzyDate] = None
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    assets: Tuple[MediaAsset, ...] = ()
    location: Optional[GeoLocation] = None
    participant_ids: Tuple[str, ...] = ()
    custom_attributes: Tuple[Tuple[str, AttributeValue], ...] = ()
    owner_id: Optional[str] = None

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("TimelineEvent id must be a non-empty string")
        if not self.event_type:
            raise ValueError("TimelineEvent event_type must be non-empty")
        if self.timestamp is not None and self.fuzzy_date is not None:
            raise ValueError(
                f"Event {self.id}: timestamp and fuzzy_date are mutually exclusive"
            )

        # Normalize (frozen, so bypass __setattr__)
        if isinstance(self.event_type, EventType):
            object.__setattr__(self, 'event_type', self.event_type.value)
        if self.timestamp is not None:
            object.__setattr__(self, 'timestamp', ensure_utc(self.timestamp))
        object.__setattr__(self, 'tags', _ordered_unique(self.tags))
        object.__setattr__(self, 'participant_ids', _ordered_unique(self.participant_ids))
        object.__setattr__(self, 'assets', tuple(self.assets))
        if isinstance(self.custom_attributes, Mapping):
            object.__setattr__(
                self, 'custom_attributes', freeze_attributes(self.custom_attributes)
            )
        else:
            object.__setattr__(self, 'custom_attributes', tuple(self.custom_attributes))

        asset_ids = [a.id for a in self.assets]
        if len(asset_ids) != len(set(asset_ids)):
            raise ValueError(f"Event {self.id}: duplicate asset ids")
        if sum(1 for a in self.assets if a.is_key_asset) > 1:
            raise ValueError(f"Event {self.id}: more than one key asset")

    @staticmethod
    def create(
        id: str,
        event_type: str = EventType.GENERAL.value,
        timestamp: Optional[datetime] = None,
        fuzzy_date: Optional[FuzzyDate] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        assets: Optional[Iterable[MediaAsset]] = None,
        location: Optional[GeoLocation] = None,
        participant_ids: Optional[Iterable[str]] = None,
        custom_attributes: Optional[Mapping[str, Any]] = None,
        owner_id: Optional[str] = None,
    ) -> TimelineEvent:
        """Convenience constructor accepting plain lists and dicts."""
        return TimelineEvent(
            id=id,
            event_type=event_type,
            timestamp=timestamp,
            fuzzy_date=fuzzy_date,
            title=title,
            description=description,
            tags=tuple(tags or ()),
            assets=tuple(assets or ()),
            location=location,
            participant_ids=tuple(participant_ids or ()),
            custom_attributes=freeze_attributes(custom_attributes),
            owner_id=owner_id,
        )

    @property
    def has_media(self) -> bool:
        return bool(self.assets)

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        return tuple(a.id for a in self.assets)

    @property
    def key_asset(self) -> Optional[MediaAsset]:
        for asset in self.assets:
            if asset.is_key_asset:
                return asset
        return None

    def attribute(self, key: str) -> Optional[AttributeValue]:
        for k, v in self.custom_attributes:
            if k == key:
                return v
        return None

    def attributes_dict(self) -> Dict[str, Any]:
        """Custom attributes as plain Python values."""
        return {k: v.to_python() for k, v in self.custom_attributes}

    def involves(self, person_id: str) -> bool:
        return person_id in self.participant_ids


def all_participant_ids(events: Iterable[TimelineEvent]) -> List[str]:
    """Every person referenced by the events, sorted."""
    ids = set()
    for event in events:
        ids.update(event.participant_ids)
    return sorted(ids)
