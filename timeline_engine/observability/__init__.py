"""
Observability & Audit Layer

RESPONSIBILITY: Audit logging, metrics, lineage tracking
ALLOWED INPUTS: Copies of results and identifiers from other layers
OUTPUTS: AuditLogEntry, MetricPoint, LineageNode

WHAT THIS LAYER MUST NOT DO:
============================
- Modify engine behavior or outputs
- Make decisions based on logged data
- Raise into the calling engine

BOUNDARY ENFORCEMENT:
=====================
- Records identifiers and counts, never mutable references
- Append-only; read access returns copies
- Safe to share between the interactive thread and the background worker
"""

from __future__ import annotations
from collections import OrderedDict, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, Iterable, Iterator, List, Optional, Tuple
from enum import Enum
import hashlib
import logging
import threading
import time

from ..contracts.base import ErrorCode

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# RECORD TYPES
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    AGGREGATION = "aggregation"
    LAYOUT = "layout"
    FLOW = "flow"
    MUTATION = "mutation"
    COMMIT = "commit"
    EXCLUSION = "exclusion"
    INGESTION = "ingestion"
    ERROR = "error"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: datetime
    layer: str
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def metadata_value(self, key: str) -> Optional[str]:
        for k, v in self.metadata:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: datetime
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


# =============================================================================
# LOG COLLECTORS (One per layer)
# =============================================================================

class LogCollector:
    """
    Append-only audit collector for one layer.

    Holds the newest `max_entries` entries; older ones are dropped.
    """

    def __init__(self, layer_name: str, max_entries: int = 1000):
        self._layer_name = layer_name
        self._entries: Deque[AuditLogEntry] = deque(maxlen=max_entries)
        self._dropped = 0
        self._lock = threading.Lock()

    def collect(self, entry: AuditLogEntry):
        with self._lock:
            if len(self._entries) == self._entries.maxlen:
                self._dropped += 1
            self._entries.append(entry)

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        since: Optional[datetime] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        if since:
            entries = [e for e in entries if e.timestamp >= since]
        return entries

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def dropped_count(self) -> int:
        with self._lock:
            return self._dropped


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Collect metric points from all layers.

    Each metric keeps its newest `max_points` points. Totals are kept
    separately and cover every point ever recorded.
    """

    def __init__(self, max_points: int = 1000):
        self._max_points = max_points
        self._metrics: Dict[str, Deque[MetricPoint]] = {}
        self._totals: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._lock = threading.Lock()
        self._register_default_metrics()

    def _register_default_metrics(self):
        defaults = [
            MetricDefinition(
                name="aggregation_duration_ms",
                metric_type=MetricType.TIMING,
                description="Bubble aggregation pass time in milliseconds",
                labels=("tier",)
            ),
            MetricDefinition(
                name="layout_duration_ms",
                metric_type=MetricType.TIMING,
                description="Axis layout pass time in milliseconds",
                labels=("tier", "mode")
            ),
            MetricDefinition(
                name="flow_duration_ms",
                metric_type=MetricType.TIMING,
                description="River flow build time in milliseconds"
            ),
            MetricDefinition(
                name="excluded_events_total",
                metric_type=MetricType.COUNTER,
                description="Events excluded for lack of a resolvable date",
                labels=("layer",)
            ),
            MetricDefinition(
                name="clusters_created",
                metric_type=MetricType.GAUGE,
                description="Cluster nodes produced by the last layout pass"
            ),
            MetricDefinition(
                name="mutations_total",
                metric_type=MetricType.COUNTER,
                description="Mutation operations by kind and outcome",
                labels=("operation", "outcome")
            ),
        ]
        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        with self._lock:
            self._definitions[definition.name] = definition
            self._metrics.setdefault(definition.name, deque(maxlen=self._max_points))

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        label_tuple = tuple(sorted(labels.items())) if labels else ()
        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=_now(),
            labels=label_tuple
        )
        with self._lock:
            self._metrics.setdefault(metric_name, deque(maxlen=self._max_points)).append(point)
            total_key = (metric_name, label_tuple)
            self._totals[total_key] = self._totals.get(total_key, 0.0) + value

    def get_metric(self, metric_name: str) -> List[MetricPoint]:
        with self._lock:
            return list(self._metrics.get(metric_name, ()))

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        points = self.get_metric(metric_name)
        return points[-1] if points else None

    def total(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Sum of every recorded value, optionally restricted to points carrying `labels`."""
        wanted = set(labels.items()) if labels else set()
        with self._lock:
            return sum(
                value for (name, label_tuple), value in self._totals.items()
                if name == metric_name and wanted.issubset(label_tuple)
            )

    def compute_aggregates(self, metric_name: str) -> Dict[str, float]:
        points = self.get_metric(metric_name)
        if not points:
            return {}

        values = [p.value for p in points]
        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# LINEAGE TRACKER
# =============================================================================

@dataclass(frozen=True)
class LineageNode:
    """An event derived from zero or more parent events."""
    entity_id: str
    operation: str
    parent_ids: Tuple[str, ...]
    recorded_at: datetime


class LineageTracker:
    """
    Tracks what each event was derived from (merge, split, move, ingest).

    Keeps the newest `max_nodes` nodes; the oldest are forgotten first.
    """

    def __init__(self, max_nodes: int = 10000):
        self._max_nodes = max_nodes
        self._nodes: OrderedDict[str, LineageNode] = OrderedDict()
        self._children: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def record_lineage(self, entity_id: str, operation: str, parent_ids: Iterable[str]):
        node = LineageNode(
            entity_id=entity_id,
            operation=operation,
            parent_ids=tuple(parent_ids),
            recorded_at=_now()
        )
        with self._lock:
            self._nodes.pop(entity_id, None)
            self._nodes[entity_id] = node
            for parent_id in node.parent_ids:
                self._children.setdefault(parent_id, []).append(entity_id)
            while len(self._nodes) > self._max_nodes:
                self._forget(self._nodes.popitem(last=False)[1])

    def _forget(self, node: LineageNode):
        for parent_id in node.parent_ids:
            children = self._children.get(parent_id)
            if children is None:
                continue
            children[:] = [c for c in children if c != node.entity_id]
            if not children:
                del self._children[parent_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def get_node(self, entity_id: str) -> Optional[LineageNode]:
        with self._lock:
            return self._nodes.get(entity_id)

    def get_ancestors(self, entity_id: str) -> List[str]:
        """All ancestor ids, nearest first."""
        ancestors: List[str] = []
        seen = set()
        frontier = [entity_id]
        with self._lock:
            while frontier:
                current = frontier.pop(0)
                node = self._nodes.get(current)
                if node is None:
                    continue
                for parent_id in node.parent_ids:
                    if parent_id not in seen:
                        seen.add(parent_id)
                        ancestors.append(parent_id)
                        frontier.append(parent_id)
        return ancestors

    def get_descendants(self, entity_id: str) -> List[str]:
        descendants: List[str] = []
        seen = set()
        frontier = [entity_id]
        with self._lock:
            while frontier:
                current = frontier.pop(0)
                for child_id in self._children.get(current, []):
                    if child_id not in seen:
                        seen.add(child_id)
                        descendants.append(child_id)
                        frontier.append(child_id)
        return descendants


# =============================================================================
# OBSERVABILITY ENGINE
# =============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for observability engine."""
    enable_metrics: bool = True
    enable_lineage: bool = True
    log_exclusions: bool = True
    max_entries: int = 1000        # audit entries kept per layer
    max_points: int = 1000         # points kept per metric
    max_lineage_nodes: int = 10000

    def __post_init__(self):
        for name in ("max_entries", "max_points", "max_lineage_nodes"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")


class ObservabilityEngine:
    """
    Central observability sink shared by all engine layers.

    BOUNDARY ENFORCEMENT:
    - ONLY observes, never modifies
    - Provides read-only access to collected data
    """

    LAYERS = ('aggregation', 'layout', 'flow', 'mutation', 'store', 'ingestion')

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._collectors: Dict[str, LogCollector] = {
            name: LogCollector(name, self._config.max_entries) for name in self.LAYERS
        }
        self._metrics = (
            MetricsCollector(self._config.max_points) if self._config.enable_metrics else None
        )
        self._lineage = (
            LineageTracker(self._config.max_lineage_nodes) if self._config.enable_lineage else None
        )
        self._sequence = 0
        self._sequence_lock = threading.Lock()

    def _next_entry_id(self, layer: str, action: str) -> str:
        with self._sequence_lock:
            self._sequence += 1
            sequence = self._sequence
        digest = hashlib.sha256(f"{layer}|{action}|{sequence}".encode()).hexdigest()[:16]
        return f"audit_{digest}"

    def log_audit(
        self,
        layer: str,
        action: str,
        event_type: AuditEventType,
        entity_id: Optional[str] = None,
        outcome: str = "success",
        **details: str
    ) -> AuditLogEntry:
        """Record an audit entry for a layer."""
        metadata = (("outcome", outcome),) + tuple(
            (key, str(value)) for key, value in sorted(details.items())
        )
        entry = AuditLogEntry(
            entry_id=self._next_entry_id(layer, action),
            event_type=event_type,
            timestamp=_now(),
            layer=layer,
            action=action,
            entity_id=entity_id,
            metadata=metadata
        )
        collector = self._collectors.get(layer)
        if collector is None:
            collector = self._collectors.setdefault(
                layer, LogCollector(layer, self._config.max_entries)
            )
        collector.collect(entry)
        return entry

    def record_exclusions(self, layer: str, excluded_event_ids: Tuple[str, ...]):
        """Record events dropped for lack of a resolvable date."""
        if not excluded_event_ids:
            return
        self.collect_metric(
            "excluded_events_total", float(len(excluded_event_ids)), {"layer": layer}
        )
        if self._config.log_exclusions:
            logger.warning(
                "%s: excluded %d event(s) without a resolvable date",
                layer, len(excluded_event_ids)
            )
            self.log_audit(
                layer=layer,
                action="exclude_unresolvable",
                event_type=AuditEventType.EXCLUSION,
                outcome="excluded",
                error=ErrorCode.UNRESOLVABLE_TIMESTAMP.name,
                count=str(len(excluded_event_ids)),
                event_ids=",".join(excluded_event_ids)
            )

    def collect_metric(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        if self._metrics:
            self._metrics.record(metric_name, value, labels)

    @contextmanager
    def measure(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Record the wall time of the enclosed block in milliseconds."""
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            self.collect_metric(metric_name, elapsed_ms, labels)

    def record_lineage(self, entity_id: str, operation: str, parent_ids: Iterable[str]):
        if self._lineage:
            self._lineage.record_lineage(entity_id, operation, parent_ids)

    def get_layer_log(self, layer: str) -> List[AuditLogEntry]:
        collector = self._collectors.get(layer)
        return collector.get_entries() if collector else []

    def get_unified_log(self, layers: Optional[List[str]] = None) -> List[AuditLogEntry]:
        """Entries from all (or the given) layers, oldest first."""
        target_layers = layers or list(self._collectors.keys())
        entries: List[AuditLogEntry] = []
        for layer_name in target_layers:
            collector = self._collectors.get(layer_name)
            if collector:
                entries.extend(collector.get_entries())
        entries.sort(key=lambda e: e.timestamp)
        return entries

    def excluded_count(self, layer: Optional[str] = None) -> int:
        """Total events excluded so far (optionally for one layer)."""
        if not self._metrics:
            return 0
        labels = {"layer": layer} if layer else None
        return int(self._metrics.total("excluded_events_total", labels))

    @property
    def metrics(self) -> Optional[MetricsCollector]:
        return self._metrics

    @property
    def lineage(self) -> Optional[LineageTracker]:
        return self._lineage

    def generate_report(self) -> Dict[str, object]:
        """Summary of collected data for diagnostics."""
        report: Dict[str, object] = {
            'entries_per_layer': {
                name: collector.entry_count
                for name, collector in self._collectors.items()
            },
            'dropped_entries_per_layer': {
                name: collector.dropped_count
                for name, collector in self._collectors.items()
            },
            'excluded_events': self.excluded_count(),
        }
        if self._metrics:
            report['timings'] = {
                name: self._metrics.compute_aggregates(name)
                for name in ("aggregation_duration_ms", "layout_duration_ms", "flow_duration_ms")
            }
        return report
