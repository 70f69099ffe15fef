"""
Event Collection Snapshots
==========================

Versioned, immutable snapshots of the event set plus all-or-nothing
change sets.

INVARIANT: Every successful commit produces a NEW snapshot whose version
is exactly one higher. A failed commit produces nothing; the snapshot it
was applied to is untouched.

The snapshot version is what view memoization keys on, so two snapshots
with the same version always hold the same events.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Tuple
import hashlib
import logging

from .contracts.base import ErrorCode, Result
from .contracts.events import TimelineEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeSet:
    """
    Events to remove and events to add, applied together.

    An id may be removed and re-added in the same change set (replacing
    an event with its updated version).

    `base_version` is the snapshot version the change was computed from.
    When set, the change only commits on top of that exact version.
    """
    removed_ids: Tuple[str, ...] = ()
    added_events: Tuple[TimelineEvent, ...] = ()
    description: str = ""
    base_version: Optional[int] = None

    @staticmethod
    def replacing(
        removed: Iterable[TimelineEvent],
        added: Iterable[TimelineEvent],
        description: str = "",
        base_version: Optional[int] = None
    ) -> ChangeSet:
        return ChangeSet(
            removed_ids=tuple(e.id for e in removed),
            added_events=tuple(added),
            description=description,
            base_version=base_version
        )

    @property
    def is_empty(self) -> bool:
        return not self.removed_ids and not self.added_events


@dataclass(frozen=True)
class EventCollection:
    """Immutable snapshot of the event set at one version."""
    events: Tuple[TimelineEvent, ...] = ()
    version: int = 0
    _index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'events', tuple(self.events))
        index: Dict[str, int] = {}
        for position, event in enumerate(self.events):
            if event.id in index:
                raise ValueError(f"duplicate event id in collection: {event.id}")
            index[event.id] = position
        object.__setattr__(self, '_index', index)

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[TimelineEvent]:
        return iter(self.events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._index

    def get(self, event_id: str) -> Optional[TimelineEvent]:
        position = self._index.get(event_id)
        return None if position is None else self.events[position]

    @property
    def content_hash(self) -> str:
        """Hash of the event ids in order (diagnostics only)."""
        return hashlib.sha256("|".join(e.id for e in self.events).encode()).hexdigest()[:16]

    def apply(self, change: ChangeSet) -> Result:
        """
        Commit a change set. Returns Result[EventCollection].

        Fails with VERSION_CONFLICT if the change was computed from another
        version, with EVENT_NOT_FOUND if a removed id is unknown and with
        ID_COLLISION if an added id is already present (and not removed)
        or added twice.
        """
        if change.base_version is not None and change.base_version != self.version:
            return Result.fail(
                ErrorCode.VERSION_CONFLICT,
                "change set was computed from another version of the collection",
                base_version=str(change.base_version),
                version=str(self.version)
            )

        removed = set(change.removed_ids)
        missing = sorted(i for i in removed if i not in self._index)
        if missing:
            return Result.fail(
                ErrorCode.EVENT_NOT_FOUND,
                "change set removes events that are not in the collection",
                event_ids=",".join(missing)
            )

        added_ids = [e.id for e in change.added_events]
        duplicates = sorted({i for i in added_ids if added_ids.count(i) > 1})
        clashes = sorted(i for i in added_ids if i in self._index and i not in removed)
        if duplicates or clashes:
            return Result.fail(
                ErrorCode.ID_COLLISION,
                "change set adds an event id that already exists",
                event_ids=",".join(duplicates + clashes)
            )

        kept = tuple(e for e in self.events if e.id not in removed)
        snapshot = EventCollection(events=kept + change.added_events, version=self.version + 1)
        logger.info(
            "committed version %d: -%d +%d event(s)%s",
            snapshot.version, len(removed), len(change.added_events),
            f" ({change.description})" if change.description else ""
        )
        return Result.success(snapshot)
