"""
Event Mutation Layer

RESPONSIBILITY: Manual re-clustering of events (merge, split, move, key asset)
ALLOWED INPUTS: TimelineEvent, MediaAsset
OUTPUTS: Result wrapping NEW TimelineEvent values

WHAT THIS LAYER MUST NOT DO:
============================
- Modify its inputs (events are frozen; every output is a new value)
- Touch the event store (callers commit a ChangeSet)
- Raise on invalid user input (failures are Results)

BOUNDARY ENFORCEMENT:
=====================
- Every produced event has at most one key asset
- Ids of produced events are deterministic functions of the input ids
- A failed operation produces no events at all
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import hashlib
import logging

from ..aggregation import dominant_category
from ..contracts.base import ErrorCode, Result
from ..contracts.events import AttributeValue, MediaAsset, TimelineEvent
from ..observability import AuditEventType, ObservabilityEngine
from ..temporal.resolution import resolve_event_time

logger = logging.getLogger(__name__)


@dataclass
class MutationConfig:
    """Naming rules for events produced by mutations."""
    merged_id_prefix: str = "merged_"
    split_id_format: str = "{event_id}_split_{n}"
    description_separator: str = " • "

    def __post_init__(self):
        if not self.merged_id_prefix:
            raise ValueError("merged_id_prefix must not be empty")
        if "{event_id}" not in self.split_id_format or "{n}" not in self.split_id_format:
            raise ValueError("split_id_format must contain {event_id} and {n}")


# =============================================================================
# KEY ASSET SELECTION
# =============================================================================

def select_key_asset(assets: Sequence[MediaAsset]) -> Optional[MediaAsset]:
    """
    Asset closest to the temporal center of the dated assets.

    Undated assets are only considered when no asset has a date; then
    the first asset wins. Ties go to the earlier asset.
    """
    if not assets:
        return None
    dated = sorted(
        ((a.created_at, index, a) for index, a in enumerate(assets) if a.created_at is not None),
        key=lambda item: (item[0], item[1])
    )
    if not dated:
        return assets[0]

    first, last = dated[0][0], dated[-1][0]
    center = first + (last - first) / 2
    best = min(dated, key=lambda item: (abs((item[0] - center).total_seconds()), item[0], item[1]))
    return best[2]


def _with_single_key(assets: Sequence[MediaAsset], preferred_id: Optional[str]) -> Tuple[MediaAsset, ...]:
    """Flag exactly one asset as key: `preferred_id` if present, else the temporal center."""
    if not assets:
        return ()
    ids = {a.id for a in assets}
    if preferred_id not in ids:
        preferred_id = select_key_asset(assets).id
    return tuple(a.with_key_flag(a.id == preferred_id) for a in assets)


def _key_asset_id(assets: Iterable[MediaAsset]) -> Optional[str]:
    for asset in assets:
        if asset.is_key_asset:
            return asset.id
    return None


# =============================================================================
# MERGED TEXT
# =============================================================================

def merged_title(events: Sequence[TimelineEvent]) -> str:
    titles = [e.title for e in events if e.title]
    if not titles:
        total_assets = sum(len(e.assets) for e in events)
        return f"Merged Event ({total_assets} photos)"
    if len(titles) == 1:
        return titles[0]
    unique = list(dict.fromkeys(titles))
    if len(unique) <= 2:
        return " & ".join(unique)
    return f"Merged Event ({len(events)} events)"


def merged_description(events: Sequence[TimelineEvent], separator: str) -> Optional[str]:
    descriptions = list(dict.fromkeys(e.description for e in events if e.description))
    if not descriptions:
        return None
    return separator.join(descriptions)


def _ordered_union(groups: Iterable[Iterable[str]]) -> Tuple[str, ...]:
    merged: Dict[str, None] = {}
    for group in groups:
        for value in group:
            merged.setdefault(value, None)
    return tuple(merged)


# =============================================================================
# MUTATION SERVICE
# =============================================================================

class EventMutationService:
    """
    Merge, split, move and key-asset operations.

    All operations are pure: same inputs -> same outputs, including ids.
    """

    def __init__(
        self,
        config: Optional[MutationConfig] = None,
        observability: Optional[ObservabilityEngine] = None
    ):
        self._config = config or MutationConfig()
        self._observability = observability

    # -------------------------------------------------------------------------
    # MERGE
    # -------------------------------------------------------------------------

    def merged_event_id(self, source_ids: Iterable[str]) -> str:
        digest = hashlib.sha256("|".join(sorted(source_ids)).encode("utf-8")).hexdigest()[:16]
        return f"{self._config.merged_id_prefix}{digest}"

    def merge_events(
        self,
        events: Sequence[TimelineEvent],
        primary_event: Optional[TimelineEvent] = None
    ) -> Result:
        """
        Combine two or more events into one.

        Returns Result[Tuple[TimelineEvent]] holding the merged event; the
        caller removes the sources from its collection.
        """
        distinct: Dict[str, TimelineEvent] = {}
        for event in events:
            distinct.setdefault(event.id, event)
        sources = list(distinct.values())

        if len(sources) < 2:
            return self._reject(
                "merge", ErrorCode.INSUFFICIENT_INPUT,
                "merge requires at least two distinct events",
                count=str(len(sources))
            )
        if primary_event is not None and primary_event.id not in distinct:
            return self._reject(
                "merge", ErrorCode.INSUFFICIENT_INPUT,
                "primary event is not one of the merged events",
                event_id=primary_event.id
            )

        chronological = self._chronological(sources)
        earliest = chronological[0]
        primary = distinct[primary_event.id] if primary_event is not None else earliest

        assets: Dict[str, MediaAsset] = {}
        for event in sources:
            for asset in event.assets:
                assets.setdefault(asset.id, asset)
        asset_list = list(assets.values())
        preferred_key = _key_asset_id(asset_list)

        attributes: Dict[str, AttributeValue] = dict(primary.custom_attributes)
        for event in sources:
            for key, value in event.custom_attributes:
                attributes.setdefault(key, value)

        merged = TimelineEvent(
            id=self.merged_event_id(distinct),
            event_type=dominant_category(e.event_type for e in chronological),
            timestamp=earliest.timestamp,
            fuzzy_date=earliest.fuzzy_date if earliest.timestamp is None else None,
            title=merged_title(sources),
            description=merged_description(sources, self._config.description_separator),
            tags=_ordered_union(e.tags for e in sources),
            assets=_with_single_key(asset_list, preferred_key),
            location=primary.location or next((e.location for e in sources if e.location), None),
            participant_ids=_ordered_union(e.participant_ids for e in sources),
            custom_attributes=tuple(attributes.items()),
            owner_id=primary.owner_id
        )

        self._accepted("merge", merged.id, tuple(distinct), sources=str(len(sources)))
        return Result.success((merged,))

    # -------------------------------------------------------------------------
    # SPLIT
    # -------------------------------------------------------------------------

    def split_event(
        self,
        event: TimelineEvent,
        asset_groups: Sequence[Sequence[MediaAsset]]
    ) -> Result:
        """
        Split an event into one new event per asset group.

        The groups must partition the event's assets exactly. Returns
        Result[Tuple[TimelineEvent, ...]] in group order.
        """
        problem = self._partition_problem(event, asset_groups)
        if problem is not None:
            return self._reject("split", ErrorCode.INVALID_PARTITION, problem, event_id=event.id)

        by_id = {a.id: a for a in event.assets}
        original_key = _key_asset_id(event.assets)
        pieces = []
        for n, group in enumerate(asset_groups, start=1):
            group_assets = [by_id[a.id] for a in group]
            pieces.append(replace(
                event,
                id=self._config.split_id_format.format(event_id=event.id, n=n),
                assets=_with_single_key(group_assets, original_key)
            ))

        result = tuple(pieces)
        for piece in result:
            self._lineage(piece.id, "split", (event.id,))
        self._accepted("split", event.id, None, pieces=str(len(result)))
        return Result.success(result)

    def _partition_problem(
        self,
        event: TimelineEvent,
        asset_groups: Sequence[Sequence[MediaAsset]]
    ) -> Optional[str]:
        if len(asset_groups) < 2:
            return "split requires at least two asset groups"
        if any(len(group) == 0 for group in asset_groups):
            return "asset groups must not be empty"

        grouped_ids = [a.id for group in asset_groups for a in group]
        if len(grouped_ids) != len(set(grouped_ids)):
            return "an asset appears in more than one group"
        if set(grouped_ids) != set(event.asset_ids):
            return "asset groups must contain every asset of the event exactly once"
        return None

    # -------------------------------------------------------------------------
    # KEY ASSET
    # -------------------------------------------------------------------------

    def update_key_asset(self, event: TimelineEvent, asset: MediaAsset) -> Result:
        """Make `asset` the event's only key asset. Returns Result[TimelineEvent]."""
        if asset.id not in event.asset_ids:
            return self._reject(
                "update_key_asset", ErrorCode.INSUFFICIENT_INPUT,
                "asset is not part of this event",
                event_id=event.id, asset_id=asset.id
            )
        updated = replace(
            event,
            assets=tuple(a.with_key_flag(a.id == asset.id) for a in event.assets)
        )
        self._accepted("update_key_asset", event.id, None, asset_id=asset.id)
        return Result.success(updated)

    # -------------------------------------------------------------------------
    # MOVE
    # -------------------------------------------------------------------------

    def move_assets(
        self,
        assets: Sequence[MediaAsset],
        source: TimelineEvent,
        target: TimelineEvent
    ) -> Result:
        """
        Move assets from `source` to `target`.

        Returns Result[(updated_source, updated_target)]. The source must
        keep at least one asset.
        """
        move_ids = list(dict.fromkeys(a.id for a in assets))
        if not move_ids:
            return self._reject(
                "move_assets", ErrorCode.INSUFFICIENT_INPUT, "no assets to move",
                source_id=source.id
            )
        if source.id == target.id:
            return self._reject(
                "move_assets", ErrorCode.INVALID_PARTITION,
                "source and target must be different events",
                event_id=source.id
            )
        if not set(move_ids).issubset(source.asset_ids):
            return self._reject(
                "move_assets", ErrorCode.INVALID_PARTITION,
                "all assets to move must belong to the source event",
                source_id=source.id
            )
        if len(move_ids) == len(source.assets):
            return self._reject(
                "move_assets", ErrorCode.INVALID_PARTITION,
                "cannot move every asset out of the source event",
                source_id=source.id
            )
        if set(move_ids) & set(target.asset_ids):
            return self._reject(
                "move_assets", ErrorCode.INVALID_PARTITION,
                "target event already holds an asset with the same id",
                target_id=target.id
            )

        moving = set(move_ids)
        remaining = [a for a in source.assets if a.id not in moving]
        # moved assets keep the source's order and lose their key flag
        moved = [a.with_key_flag(False) for a in source.assets if a.id in moving]
        combined = list(target.assets) + moved

        updated_source = replace(
            source, assets=_with_single_key(remaining, _key_asset_id(remaining))
        )
        updated_target = replace(
            target, assets=_with_single_key(combined, _key_asset_id(target.assets))
        )

        self._lineage(target.id, "move_assets", (source.id, target.id))
        self._accepted("move_assets", target.id, None, moved=str(len(moved)), source_id=source.id)
        return Result.success((updated_source, updated_target))

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    @staticmethod
    def _chronological(events: Sequence[TimelineEvent]) -> List[TimelineEvent]:
        """Resolvable events by time (input order on ties), then undated ones."""
        dated: List[Tuple[datetime, int, TimelineEvent]] = []
        undated: List[TimelineEvent] = []
        for index, event in enumerate(events):
            instant = resolve_event_time(event)
            if instant is None:
                undated.append(event)
            else:
                dated.append((instant, index, event))
        dated.sort(key=lambda item: (item[0], item[1]))
        return [event for _, _, event in dated] + undated

    def _reject(self, operation: str, code: ErrorCode, message: str, **context: str) -> Result:
        logger.info("%s rejected: %s", operation, message)
        if self._observability:
            self._observability.collect_metric(
                "mutations_total", 1.0, {"operation": operation, "outcome": "rejected"}
            )
            self._observability.log_audit(
                layer="mutation",
                action=operation,
                event_type=AuditEventType.MUTATION,
                entity_id=context.get("event_id") or context.get("source_id"),
                outcome="rejected",
                error=code.name
            )
        return Result.fail(code, message, **context)

    def _accepted(
        self,
        operation: str,
        entity_id: str,
        parent_ids: Optional[Tuple[str, ...]],
        **details: str
    ):
        logger.info("%s produced %s", operation, entity_id)
        if self._observability:
            self._observability.collect_metric(
                "mutations_total", 1.0, {"operation": operation, "outcome": "success"}
            )
            self._observability.log_audit(
                layer="mutation",
                action=operation,
                event_type=AuditEventType.MUTATION,
                entity_id=entity_id,
                **details
            )
        if parent_ids:
            self._lineage(entity_id, operation, parent_ids)

    def _lineage(self, entity_id: str, operation: str, parent_ids: Tuple[str, ...]):
        if self._observability:
            self._observability.record_lineage(entity_id, operation, parent_ids)


__all__ = [
    'EventMutationService',
    'MutationConfig',
    'merged_description',
    'merged_title',
    'select_key_asset',
]
