"""
Asset Ingestion Layer

RESPONSIBILITY: Group freshly imported media assets into timeline events
ALLOWED INPUTS: MediaAsset values with capture times (and optional locations)
OUTPUTS: MediaCluster values, then NEW TimelineEvent values

WHAT THIS LAYER MUST NOT DO:
============================
- Touch the event store (callers commit a ChangeSet)
- Invent capture times for undated assets
- Depend on input order (assets are sorted by capture time, then id)

BOUNDARY ENFORCEMENT:
=====================
- Assets without created_at are excluded and reported, never guessed
- Every cluster flags exactly one key asset
- Event ids are deterministic functions of the clustered asset ids

CLUSTERING PASSES:
==================
1. Bursts: runs of at least `min_burst_size` assets, each within
   `burst_threshold_seconds` of the previous one. A run reaching
   `max_burst_size` is closed and a new run starts.
2. Proximity: the remaining assets, in time order, chained while each
   stays within `temporal_threshold_minutes` of both the previous asset
   and the first asset of the cluster. A located asset must also lie
   within `spatial_threshold_meters` of every located member.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import hashlib
import logging

from ..contracts.events import EventType, GeoLocation, MediaAsset, TimelineEvent
from ..mutation import select_key_asset
from ..observability import AuditEventType, ObservabilityEngine

logger = logging.getLogger(__name__)


class ContextType(Enum):
    """What a timeline is about; selects clustering presets."""
    PERSON = "person"
    PET = "pet"
    PROJECT = "project"
    BUSINESS = "business"


@dataclass
class AssetClusteringConfig:
    """
    Thresholds for grouping assets into events.

    collection_threshold: proximity clusters with MORE assets than this
        become photo_collection events
    """
    temporal_threshold_minutes: int = 60
    spatial_threshold_meters: float = 1000.0
    burst_threshold_seconds: int = 30
    min_burst_size: int = 3
    max_burst_size: int = 50
    collection_threshold: int = 10
    event_id_prefix: str = "event_"

    def __post_init__(self):
        if self.temporal_threshold_minutes < 0:
            raise ValueError("temporal_threshold_minutes must not be negative")
        if self.spatial_threshold_meters < 0:
            raise ValueError("spatial_threshold_meters must not be negative")
        if self.burst_threshold_seconds < 0:
            raise ValueError("burst_threshold_seconds must not be negative")
        if self.min_burst_size < 2:
            raise ValueError("min_burst_size must be at least 2")
        if self.max_burst_size < self.min_burst_size:
            raise ValueError("max_burst_size must not be below min_burst_size")
        if self.collection_threshold < 1:
            raise ValueError("collection_threshold must be at least 1")
        if not self.event_id_prefix:
            raise ValueError("event_id_prefix must not be empty")

    @classmethod
    def for_context(cls, context_type: ContextType) -> AssetClusteringConfig:
        """Preset thresholds for a kind of timeline."""
        if not isinstance(context_type, ContextType):
            raise TypeError(f"context_type must be a ContextType, got {type(context_type).__name__}")
        minutes, meters, seconds = CONTEXT_PRESETS[context_type]
        return cls(
            temporal_threshold_minutes=minutes,
            spatial_threshold_meters=meters,
            burst_threshold_seconds=seconds
        )


# (temporal minutes, spatial meters, burst seconds)
CONTEXT_PRESETS: Dict[ContextType, Tuple[int, float, int]] = {
    ContextType.PERSON: (120, 500.0, 60),
    ContextType.PET: (30, 100.0, 15),
    ContextType.PROJECT: (240, 50.0, 30),
    ContextType.BUSINESS: (480, 1000.0, 120),
}


# =============================================================================
# CLUSTER CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class MediaCluster:
    """Assets that will become one timeline event, in capture order."""
    assets: Tuple[MediaAsset, ...]
    start: datetime
    end: datetime
    is_burst: bool = False
    center_location: Optional[GeoLocation] = None

    def __post_init__(self):
        if not self.assets:
            raise ValueError("MediaCluster requires at least one asset")
        if sum(1 for a in self.assets if a.is_key_asset) != 1:
            raise ValueError("MediaCluster must flag exactly one key asset")

    @property
    def key_asset(self) -> MediaAsset:
        return next(a for a in self.assets if a.is_key_asset)

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        return tuple(a.id for a in self.assets)

    @property
    def asset_count(self) -> int:
        return len(self.assets)

    @property
    def duration_minutes(self) -> int:
        """Whole minutes from the first to the last capture."""
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class ClusteringResult:
    clusters: Tuple[MediaCluster, ...]
    excluded_asset_ids: Tuple[str, ...] = ()


# =============================================================================
# PURE HELPERS
# =============================================================================

def center_location(assets: Iterable[MediaAsset]) -> Optional[GeoLocation]:
    """
    Mean latitude/longitude of the located assets.

    A single location is returned as is (name included); a centroid
    carries no name.
    """
    locations = [a.location for a in assets if a.location is not None]
    if not locations:
        return None
    if len(locations) == 1:
        return locations[0]
    return GeoLocation(
        latitude=sum(loc.latitude for loc in locations) / len(locations),
        longitude=sum(loc.longitude for loc in locations) / len(locations)
    )


def cluster_key_asset(assets: Sequence[MediaAsset]) -> MediaAsset:
    """Temporal center of the located assets, else of all assets."""
    located = [a for a in assets if a.location is not None]
    return select_key_asset(located or assets)


def _make_cluster(assets: Sequence[MediaAsset], is_burst: bool) -> MediaCluster:
    key = cluster_key_asset(assets)
    return MediaCluster(
        assets=tuple(a.with_key_flag(a.id == key.id) for a in assets),
        start=assets[0].created_at,
        end=assets[-1].created_at,
        is_burst=is_burst,
        center_location=center_location(assets)
    )


# =============================================================================
# CLUSTERER
# =============================================================================

class AssetClusterer:
    """
    Groups imported assets into events.

    Stateless apart from configuration; the same assets always produce
    the same clusters and the same event ids.
    """

    def __init__(
        self,
        config: Optional[AssetClusteringConfig] = None,
        observability: Optional[ObservabilityEngine] = None
    ):
        self._config = config or AssetClusteringConfig()
        self._observability = observability

    @property
    def config(self) -> AssetClusteringConfig:
        return self._config

    def cluster_assets(
        self,
        assets: Iterable[MediaAsset],
        config: Optional[AssetClusteringConfig] = None
    ) -> ClusteringResult:
        """Burst pass, then proximity pass over what the bursts left."""
        config = config or self._config

        distinct: Dict[str, MediaAsset] = {}
        for asset in assets:
            distinct.setdefault(asset.id, asset)
        excluded = tuple(a.id for a in distinct.values() if a.created_at is None)
        dated = sorted(
            (a for a in distinct.values() if a.created_at is not None),
            key=lambda a: (a.created_at, a.id)
        )

        bursts = self._detect_bursts(dated, config)
        in_burst = {asset_id for burst in bursts for asset_id in burst.asset_ids}
        remaining = [a for a in dated if a.id not in in_burst]
        nearby = self._cluster_by_proximity(remaining, config)
        clusters = tuple(sorted(bursts + nearby, key=lambda c: c.start))

        logger.debug(
            "clustered %d asset(s) into %d burst(s) and %d proximity cluster(s)",
            len(dated), len(bursts), len(nearby)
        )
        if excluded:
            logger.warning("ingestion: excluded %d asset(s) without a capture time", len(excluded))
        if self._observability:
            if excluded:
                self._observability.log_audit(
                    layer="ingestion",
                    action="exclude_undated_assets",
                    event_type=AuditEventType.EXCLUSION,
                    outcome="excluded",
                    count=str(len(excluded)),
                    asset_ids=",".join(excluded)
                )
            self._observability.collect_metric("asset_clusters_created", float(len(clusters)))
            self._observability.log_audit(
                layer="ingestion",
                action="cluster_assets",
                event_type=AuditEventType.INGESTION,
                assets=str(len(dated)),
                bursts=str(len(bursts)),
                clusters=str(len(clusters))
            )
        return ClusteringResult(clusters=clusters, excluded_asset_ids=excluded)

    def _detect_bursts(
        self,
        assets: Sequence[MediaAsset],
        config: AssetClusteringConfig
    ) -> List[MediaCluster]:
        gap_limit = timedelta(seconds=config.burst_threshold_seconds)
        bursts: List[MediaCluster] = []
        run: List[MediaAsset] = []
        for asset in assets:
            if run and asset.created_at - run[-1].created_at > gap_limit:
                if len(run) >= config.min_burst_size:
                    bursts.append(_make_cluster(run, is_burst=True))
                run = []
            run.append(asset)
            if len(run) >= config.max_burst_size:
                bursts.append(_make_cluster(run, is_burst=True))
                run = []
        if len(run) >= config.min_burst_size:
            bursts.append(_make_cluster(run, is_burst=True))
        return bursts

    def _cluster_by_proximity(
        self,
        assets: Sequence[MediaAsset],
        config: AssetClusteringConfig
    ) -> List[MediaCluster]:
        clusters: List[MediaCluster] = []
        current: List[MediaAsset] = []
        for asset in assets:
            if current and not self._fits(current, asset, config):
                clusters.append(_make_cluster(current, is_burst=False))
                current = []
            current.append(asset)
        if current:
            clusters.append(_make_cluster(current, is_burst=False))
        return clusters

    def _fits(
        self,
        cluster: Sequence[MediaAsset],
        asset: MediaAsset,
        config: AssetClusteringConfig
    ) -> bool:
        window = timedelta(minutes=config.temporal_threshold_minutes)
        if asset.created_at - cluster[-1].created_at > window:
            return False
        if asset.created_at - cluster[0].created_at > window:
            return False
        if asset.location is None:
            return True
        return all(
            member.location.distance_to(asset.location) <= config.spatial_threshold_meters
            for member in cluster if member.location is not None
        )

    # -------------------------------------------------------------------------
    # EVENTS
    # -------------------------------------------------------------------------

    def event_id_for(self, cluster: MediaCluster) -> str:
        digest = hashlib.sha256("|".join(sorted(cluster.asset_ids)).encode("utf-8")).hexdigest()[:16]
        return f"{self._config.event_id_prefix}{digest}"

    def event_type_for(self, cluster: MediaCluster) -> str:
        if cluster.is_burst:
            return EventType.PHOTO_BURST.value
        if cluster.asset_count > self._config.collection_threshold:
            return EventType.PHOTO_COLLECTION.value
        return EventType.PHOTO.value

    def create_events(
        self,
        clusters: Iterable[MediaCluster],
        owner_id: Optional[str] = None,
        participant_ids: Iterable[str] = ()
    ) -> Tuple[TimelineEvent, ...]:
        """One new event per cluster, dated at the cluster's first capture."""
        participants = tuple(participant_ids)
        events = tuple(
            TimelineEvent(
                id=self.event_id_for(cluster),
                event_type=self.event_type_for(cluster),
                timestamp=cluster.start,
                title=cluster_title(cluster),
                description=cluster_description(cluster),
                assets=cluster.assets,
                location=cluster.center_location,
                participant_ids=participants,
                owner_id=owner_id
            )
            for cluster in clusters
        )
        if self._observability:
            self._observability.log_audit(
                layer="ingestion",
                action="create_events",
                event_type=AuditEventType.INGESTION,
                events=str(len(events))
            )
            for event in events:
                self._observability.record_lineage(event.id, "ingest", event.asset_ids)
        return events


def cluster_title(cluster: MediaCluster) -> Optional[str]:
    """Generated title; single photos get none."""
    if cluster.is_burst:
        return f"Photo Burst ({cluster.asset_count} photos)"
    if cluster.asset_count > 1:
        return f"{cluster.asset_count} Photos"
    return None


def cluster_description(cluster: MediaCluster, separator: str = " • ") -> Optional[str]:
    parts = []
    if cluster.duration_minutes > 0:
        parts.append(f"Duration: {cluster.duration_minutes} minutes")
    if cluster.center_location is not None and cluster.center_location.name:
        parts.append(f"Location: {cluster.center_location.name}")
    return separator.join(parts) or None


__all__ = [
    'AssetClusterer',
    'AssetClusteringConfig',
    'ClusteringResult',
    'CONTEXT_PRESETS',
    'ContextType',
    'MediaCluster',
    'center_location',
    'cluster_description',
    'cluster_key_asset',
    'cluster_title',
]
