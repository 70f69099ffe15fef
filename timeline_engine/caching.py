"""View memoization for aggregation, layout and flow passes."""

from __future__ import annotations
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple
import threading

from .contracts.geometry import Size
from .contracts.views import DisplayMode, Orientation, VisibleRange
from .temporal.tiers import ZoomTier
from .timeutil import ensure_utc


@dataclass
class CacheConfig:
    max_entries: int = 64

    def __post_init__(self):
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")


@dataclass(frozen=True)
class ViewKey:
    """
    Everything a view pass depends on.

    Two passes with equal keys produce identical output, so the events
    themselves are represented only by the snapshot version.
    """
    events_version: int
    view: str
    tier: Optional[ZoomTier] = None
    viewport_size: Optional[Size] = None
    orientation: Optional[Orientation] = None
    display_mode: Optional[DisplayMode] = None
    pixels_per_day: Optional[float] = None
    min_date: Optional[datetime] = None
    selected_people: Tuple[str, ...] = ()
    visible_range: Optional[VisibleRange] = None
    expanded_cluster_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.min_date is not None:
            object.__setattr__(self, 'min_date', ensure_utc(self.min_date))
        object.__setattr__(self, 'selected_people', tuple(sorted(set(self.selected_people))))
        object.__setattr__(self, 'expanded_cluster_ids', tuple(sorted(set(self.expanded_cluster_ids))))


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    hit_count: int
    miss_count: int
    eviction_count: int
    hit_rate: float
    computed_at: datetime


class ViewMemo:
    """Bounded LRU memo of computed views."""

    def __init__(self, config: Optional[CacheConfig] = None):
        self._max_entries = (config or CacheConfig()).max_entries
        self._cache: "OrderedDict[ViewKey, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: ViewKey) -> Optional[Any]:
        """Cached view, or None."""
        with self._lock:
            if key not in self._cache:
                self._misses += 1
                return None
            self._cache.move_to_end(key)
            self._hits += 1
            return self._cache[key]

    def put(self, key: ViewKey, value: Any):
        with self._lock:
            self._cache[key] = value
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_entries:
                self._cache.popitem(last=False)
                self._evictions += 1

    def get_or_compute(self, key: ViewKey, compute: Callable[[], Any]) -> Any:
        """
        Return the cached view or compute and store it.

        `compute` runs outside the lock; two threads missing on the same
        key may both compute, and the later result is kept.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.put(key, value)
        return value

    def invalidate_before(self, events_version: int) -> int:
        """Drop views computed from older snapshots. Returns the number dropped."""
        with self._lock:
            stale = [k for k in self._cache if k.events_version < events_version]
            for key in stale:
                del self._cache[key]
            return len(stale)

    def clear(self):
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                total_entries=len(self._cache),
                hit_count=self._hits,
                miss_count=self._misses,
                eviction_count=self._evictions,
                hit_rate=self._hits / total if total > 0 else 0.0,
                computed_at=datetime.now(timezone.utc)
            )
