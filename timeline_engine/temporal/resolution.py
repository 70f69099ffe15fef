"""
Date Resolution
===============

Maps an event to the single instant the engines place it at.

- Precise timestamp -> the timestamp itself
- Fuzzy date        -> midpoint of the interval the fuzzy date covers
- Neither           -> unresolvable (None); callers exclude and report
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from ..contracts.events import FuzzyDate, FuzzyGranularity, Season, TimelineEvent


def _utc(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _month_after(year: int, month: int) -> datetime:
    if month == 12:
        return _utc(year + 1, 1, 1)
    return _utc(year, month + 1, 1)


# Meteorological seasons, northern hemisphere: start month
_SEASON_START_MONTH = {
    Season.SPRING: 3,
    Season.SUMMER: 6,
    Season.FALL: 9,
    Season.WINTER: 12,
}


def fuzzy_interval(fuzzy: FuzzyDate) -> Optional[Tuple[datetime, datetime]]:
    """
    Half-open interval [start, end) covered by a fuzzy date.

    Returns None if a component required by the granularity is missing
    or the date does not exist.
    """
    if fuzzy.year is None:
        return None
    year = fuzzy.year
    try:
        if fuzzy.granularity is FuzzyGranularity.DECADE:
            return _utc(year), _utc(year + 10)
        if fuzzy.granularity is FuzzyGranularity.YEAR:
            return _utc(year), _utc(year + 1)
        if fuzzy.granularity is FuzzyGranularity.SEASON:
            if fuzzy.season is None:
                return None
            start_month = _SEASON_START_MONTH[fuzzy.season]
            start = _utc(year, start_month)
            end_month = start_month + 3
            if end_month > 12:
                return start, _utc(year + 1, end_month - 12)
            return start, _utc(year, end_month)
        if fuzzy.granularity is FuzzyGranularity.MONTH:
            if fuzzy.month is None:
                return None
            return _utc(year, fuzzy.month), _month_after(year, fuzzy.month)
        if fuzzy.month is None or fuzzy.day is None:
            return None
        start = _utc(year, fuzzy.month, fuzzy.day)
        return start, start + timedelta(days=1)
    except ValueError:
        # e.g. February 30th, year 0
        return None


def fuzzy_midpoint(fuzzy: FuzzyDate) -> Optional[datetime]:
    interval = fuzzy_interval(fuzzy)
    if interval is None:
        return None
    start, end = interval
    return start + (end - start) / 2


def resolve_event_time(event: TimelineEvent) -> Optional[datetime]:
    """The instant an event is placed at, or None if unresolvable."""
    if event.timestamp is not None:
        return event.timestamp
    if event.fuzzy_date is not None:
        return fuzzy_midpoint(event.fuzzy_date)
    return None


@dataclass(frozen=True)
class ResolvedEvents:
    """
    Events split into placeable and excluded.

    `placed` is chronological; events at the same instant keep their
    input order.
    """
    placed: Tuple[Tuple[TimelineEvent, datetime], ...]
    excluded_event_ids: Tuple[str, ...]

    @property
    def events(self) -> Tuple[TimelineEvent, ...]:
        return tuple(event for event, _ in self.placed)

    @property
    def earliest(self) -> Optional[datetime]:
        return self.placed[0][1] if self.placed else None


def resolve_events(events: Iterable[TimelineEvent]) -> ResolvedEvents:
    """Resolve every event and sort the placeable ones by time."""
    indexed: List[Tuple[datetime, int, TimelineEvent]] = []
    excluded: List[str] = []
    for index, event in enumerate(events):
        instant = resolve_event_time(event)
        if instant is None:
            excluded.append(event.id)
        else:
            indexed.append((instant, index, event))
    indexed.sort(key=lambda item: (item[0], item[1]))
    return ResolvedEvents(
        placed=tuple((event, instant) for instant, _, event in indexed),
        excluded_event_ids=tuple(excluded)
    )
