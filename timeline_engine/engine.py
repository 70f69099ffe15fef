"""
Timeline Engine
===============

Facade orchestrating all layers against one versioned event collection.

LAYER FLOW:
===========
1. Store: EventCollection snapshot (versioned, immutable)
2. Views: Aggregation / Layout / Flow, memoized per snapshot version
3. Mutation: merge / split / move / key asset -> ChangeSet -> atomic commit
4. Ingestion: imported assets -> clustered events -> atomic commit
5. Observability: records every layer's activity

A failed mutation leaves the current snapshot, and every memoized view,
exactly as they were.
"""

from __future__ import annotations
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union
import logging
import threading

from .aggregation import BubbleAggregator
from .caching import ViewKey, ViewMemo
from .config import EngineConfig
from .contracts.base import ErrorCode, Result
from .contracts.events import MediaAsset, TimelineEvent
from .contracts.geometry import Size
from .contracts.views import AggregationResult, DisplayMode, FlowLayout, Orientation, VisibleRange
from .flow import RiverFlowBuilder
from .ingestion import AssetClusterer, AssetClusteringConfig
from .layout import TimelineLayoutEngine, build_render_nodes
from .mutation import EventMutationService
from .observability import AuditEventType, ObservabilityEngine
from .scheduling import BackgroundViewWorker, ViewTicket
from .store import ChangeSet, EventCollection
from .temporal.tiers import ZoomTier

logger = logging.getLogger(__name__)


class TimelineEngine:
    """
    Unified entry point for the view-state controller.

    Views are computed from the current snapshot; mutations produce a new
    snapshot or nothing.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        events: Union[EventCollection, Iterable[TimelineEvent], None] = None
    ):
        self._config = config or EngineConfig()
        self._observability = ObservabilityEngine(self._config.observability)

        self._aggregator = BubbleAggregator(self._config.aggregation, self._observability)
        self._layout_engine = TimelineLayoutEngine(self._config.layout, self._observability)
        self._flow_builder = RiverFlowBuilder(self._config.flow, self._observability)
        self._mutations = EventMutationService(self._config.mutation, self._observability)
        self._clusterer = AssetClusterer(self._config.ingestion, self._observability)

        self._memo = ViewMemo(self._config.cache)
        self._worker: Optional[BackgroundViewWorker] = None
        self._lock = threading.Lock()

        if isinstance(events, EventCollection):
            self._collection = events
        else:
            self._collection = EventCollection(events=tuple(events or ()))

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def collection(self) -> EventCollection:
        with self._lock:
            return self._collection

    @property
    def events(self) -> Tuple[TimelineEvent, ...]:
        return self.collection.events

    @property
    def version(self) -> int:
        return self.collection.version

    @property
    def observability(self) -> ObservabilityEngine:
        return self._observability

    @property
    def memo(self) -> ViewMemo:
        return self._memo

    @property
    def mutations(self) -> EventMutationService:
        return self._mutations

    @property
    def clusterer(self) -> AssetClusterer:
        return self._clusterer

    def load_events(self, events: Iterable[TimelineEvent]) -> EventCollection:
        """Replace the whole collection (new version)."""
        with self._lock:
            self._collection = EventCollection(
                events=tuple(events), version=self._collection.version + 1
            )
            snapshot = self._collection
        self._memo.invalidate_before(snapshot.version)
        logger.info("loaded %d event(s) as version %d", len(snapshot), snapshot.version)
        return snapshot

    def commit(self, change: ChangeSet) -> Result:
        """Apply a change set atomically. Returns Result[EventCollection]."""
        with self._lock:
            result = self._collection.apply(change)
            if result.is_success:
                self._collection = result.value

        if result.is_success:
            self._memo.invalidate_before(result.value.version)
            self._observability.log_audit(
                layer="store",
                action="commit",
                event_type=AuditEventType.COMMIT,
                version=str(result.value.version),
                removed=str(len(change.removed_ids)),
                added=str(len(change.added_events))
            )
        else:
            self._observability.log_audit(
                layer="store",
                action="commit",
                event_type=AuditEventType.ERROR,
                outcome="rejected",
                error=result.error.code.name
            )
        return result

    # =========================================================================
    # VIEWS
    # =========================================================================

    def aggregate(self, tier: ZoomTier) -> AggregationResult:
        """Bubble view of the current snapshot (with excluded event ids)."""
        snapshot = self.collection
        key = ViewKey(events_version=snapshot.version, view="bubbles", tier=tier)
        return self._memo.get_or_compute(
            key, lambda: self._aggregator.aggregate_with_diagnostics(snapshot.events, tier)
        )

    def layout(
        self,
        mode: DisplayMode,
        orientation: Orientation,
        viewport_size: Union[Size, Tuple[float, float]],
        pixels_per_day: float,
        min_date: Optional[datetime] = None,
        tier: ZoomTier = ZoomTier.DAY,
        visible_range: Optional[VisibleRange] = None,
        expanded_cluster_ids: Iterable[str] = ()
    ) -> Result:
        """
        Axis view of the current snapshot. Returns Result[Tuple[LayoutNode, ...]].

        Crowded buckets are pre-clustered unless their cluster id is in
        `expanded_cluster_ids`. `min_date` defaults to the start of
        `visible_range`, else the earliest resolvable event.
        """
        snapshot = self.collection
        viewport = viewport_size if isinstance(viewport_size, Size) else Size(*viewport_size)
        expanded = tuple(expanded_cluster_ids)
        candidates, excluded = build_render_nodes(
            snapshot.events,
            tier,
            visible_range=visible_range,
            expanded_cluster_ids=expanded,
            thresholds=self._layout_engine.config.density_thresholds
        )
        if min_date is None:
            if visible_range is not None:
                min_date = visible_range.start
            elif candidates:
                min_date = candidates[0].time

        key = ViewKey(
            events_version=snapshot.version,
            view="axis",
            tier=tier,
            viewport_size=viewport,
            orientation=orientation,
            display_mode=mode,
            pixels_per_day=pixels_per_day,
            min_date=min_date,
            visible_range=visible_range,
            expanded_cluster_ids=expanded
        )
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        self._observability.record_exclusions("layout", excluded)
        result = self._layout_engine.layout(
            candidates, mode, orientation, viewport, pixels_per_day, min_date, tier
        )
        self._memo.put(key, result)
        return result

    def build_flows(
        self,
        selected_people: Iterable[str] = (),
        start_date: Optional[datetime] = None
    ) -> FlowLayout:
        """River view of the current snapshot."""
        snapshot = self.collection
        people = tuple(selected_people)
        key = ViewKey(
            events_version=snapshot.version,
            view="flow",
            pixels_per_day=self._config.flow.pixels_per_day,
            min_date=start_date,
            selected_people=people
        )
        return self._memo.get_or_compute(
            key, lambda: self._flow_builder.build_flow_layout(snapshot.events, people, start_date)
        )

    # =========================================================================
    # BACKGROUND PASSES
    # =========================================================================

    def _background(self) -> BackgroundViewWorker:
        with self._lock:
            if self._worker is None:
                self._worker = BackgroundViewWorker(self._config.background_workers)
            return self._worker

    def submit_aggregate(
        self,
        tier: ZoomTier,
        on_result: Optional[Callable[[AggregationResult], None]] = None
    ) -> ViewTicket:
        """Aggregate off the calling thread; only the newest pass is delivered."""
        return self._background().submit(lambda: self.aggregate(tier), on_result)

    def submit_layout(
        self,
        mode: DisplayMode,
        orientation: Orientation,
        viewport_size: Union[Size, Tuple[float, float]],
        pixels_per_day: float,
        min_date: Optional[datetime] = None,
        tier: ZoomTier = ZoomTier.DAY,
        on_result: Optional[Callable[[Result], None]] = None,
        visible_range: Optional[VisibleRange] = None,
        expanded_cluster_ids: Iterable[str] = ()
    ) -> ViewTicket:
        """Layout off the calling thread; only the newest pass is delivered."""
        expanded = tuple(expanded_cluster_ids)
        return self._background().submit(
            lambda: self.layout(
                mode, orientation, viewport_size, pixels_per_day, min_date, tier,
                visible_range=visible_range, expanded_cluster_ids=expanded
            ),
            on_result
        )

    def shutdown(self, wait: bool = True):
        with self._lock:
            worker, self._worker = self._worker, None
        if worker is not None:
            worker.shutdown(wait=wait)

    # =========================================================================
    # MUTATIONS (commit atomically)
    # =========================================================================

    def _lookup(self, snapshot: EventCollection, event_ids: Sequence[str]) -> Result:
        missing = [i for i in event_ids if i not in snapshot]
        if missing:
            return Result.fail(
                ErrorCode.EVENT_NOT_FOUND,
                "events are not in the collection",
                event_ids=",".join(missing)
            )
        return Result.success(tuple(snapshot.get(i) for i in event_ids))

    def merge(self, event_ids: Sequence[str], primary_id: Optional[str] = None) -> Result:
        """Merge events of the collection and commit. Returns Result[EventCollection]."""
        snapshot = self.collection
        ids = list(event_ids) + ([primary_id] if primary_id else [])
        found = self._lookup(snapshot, ids)
        if found.is_failure:
            return found
        primary = snapshot.get(primary_id) if primary_id else None

        sources = found.value[:len(event_ids)]
        merged = self._mutations.merge_events(sources, primary_event=primary)
        if merged.is_failure:
            return merged
        removed = {e.id: e for e in sources}.values()
        return self.commit(ChangeSet.replacing(
            removed, merged.value, description="merge", base_version=snapshot.version
        ))

    def split(self, event_id: str, asset_id_groups: Sequence[Sequence[str]]) -> Result:
        """Split an event by asset ids and commit. Returns Result[EventCollection]."""
        snapshot = self.collection
        found = self._lookup(snapshot, [event_id])
        if found.is_failure:
            return found
        event = found.value[0]

        by_id = {a.id: a for a in event.assets}
        unknown = [a for group in asset_id_groups for a in group if a not in by_id]
        if unknown:
            return Result.fail(
                ErrorCode.INVALID_PARTITION,
                "asset groups reference assets the event does not hold",
                event_id=event_id, asset_ids=",".join(unknown)
            )
        groups = [[by_id[a] for a in group] for group in asset_id_groups]

        pieces = self._mutations.split_event(event, groups)
        if pieces.is_failure:
            return pieces
        return self.commit(ChangeSet.replacing(
            [event], pieces.value, description="split", base_version=snapshot.version
        ))

    def update_key_asset(self, event_id: str, asset_id: str) -> Result:
        """Set an event's key asset and commit. Returns Result[EventCollection]."""
        snapshot = self.collection
        found = self._lookup(snapshot, [event_id])
        if found.is_failure:
            return found
        event = found.value[0]

        asset = next((a for a in event.assets if a.id == asset_id), None)
        if asset is None:
            return Result.fail(
                ErrorCode.INSUFFICIENT_INPUT,
                "asset is not part of this event",
                event_id=event_id, asset_id=asset_id
            )
        updated = self._mutations.update_key_asset(event, asset)
        if updated.is_failure:
            return updated
        return self.commit(ChangeSet.replacing(
            [event], [updated.value], description="key asset", base_version=snapshot.version
        ))

    def move_assets(self, asset_ids: Sequence[str], source_id: str, target_id: str) -> Result:
        """Move assets between events and commit. Returns Result[EventCollection]."""
        snapshot = self.collection
        found = self._lookup(snapshot, [source_id, target_id])
        if found.is_failure:
            return found
        source, target = found.value

        by_id = {a.id: a for a in source.assets}
        unknown = [a for a in asset_ids if a not in by_id]
        if unknown:
            return Result.fail(
                ErrorCode.INVALID_PARTITION,
                "all assets to move must belong to the source event",
                source_id=source_id, asset_ids=",".join(unknown)
            )

        moved = self._mutations.move_assets([by_id[a] for a in asset_ids], source, target)
        if moved.is_failure:
            return moved
        return self.commit(ChangeSet.replacing(
            [source, target], moved.value, description="move assets",
            base_version=snapshot.version
        ))

    def import_assets(
        self,
        assets: Iterable[MediaAsset],
        owner_id: Optional[str] = None,
        participant_ids: Iterable[str] = (),
        config: Optional[AssetClusteringConfig] = None
    ) -> Result:
        """
        Cluster new assets into events and commit them. Returns Result[EventCollection].

        Assets without a capture time are left out (see the ingestion
        audit log). Fails with INSUFFICIENT_INPUT when nothing is left to
        import and with ID_COLLISION when the same assets were already
        imported.
        """
        snapshot = self.collection
        clustered = self._clusterer.cluster_assets(assets, config)
        if not clustered.clusters:
            return Result.fail(
                ErrorCode.INSUFFICIENT_INPUT,
                "no assets with a capture time to import",
                excluded=str(len(clustered.excluded_asset_ids))
            )
        events = self._clusterer.create_events(clustered.clusters, owner_id, participant_ids)
        return self.commit(ChangeSet(
            added_events=events, description="import assets", base_version=snapshot.version
        ))
