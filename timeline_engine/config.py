"""
Engine Configuration
====================

Dataclass configuration per layer, unified by EngineConfig.

Invalid values raise ValueError when the config is constructed, never
later during a view pass.

ENVIRONMENT OVERRIDES:
======================
EngineConfig.from_env() reads:
- TIMELINE_ENGINE_PIXELS_PER_DAY   river view scale (float)
- TIMELINE_ENGINE_LANE_SPACING     river lane spacing in pixels (float)
- TIMELINE_ENGINE_CACHE_SIZE       view memo capacity (int)
- TIMELINE_ENGINE_WORKERS          background worker threads (int)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Mapping, Optional
import os

from .aggregation import AggregationConfig
from .caching import CacheConfig
from .flow import FlowConfig
from .ingestion import AssetClusteringConfig
from .layout import LayoutConfig
from .mutation import MutationConfig
from .observability import ObservabilityConfig

ENV_PREFIX = "TIMELINE_ENGINE_"


def _read(env: Mapping[str, str], name: str, cast):
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name}: invalid value {raw!r}") from exc


@dataclass
class EngineConfig:
    """Unified configuration for all layers."""
    aggregation: AggregationConfig = None
    layout: LayoutConfig = None
    flow: FlowConfig = None
    mutation: MutationConfig = None
    cache: CacheConfig = None
    observability: ObservabilityConfig = None
    ingestion: AssetClusteringConfig = None
    background_workers: int = 1

    def __post_init__(self):
        self.aggregation = self.aggregation or AggregationConfig()
        self.layout = self.layout or LayoutConfig()
        self.flow = self.flow or FlowConfig()
        self.mutation = self.mutation or MutationConfig()
        self.cache = self.cache or CacheConfig()
        self.observability = self.observability or ObservabilityConfig()
        self.ingestion = self.ingestion or AssetClusteringConfig()
        if self.background_workers < 1:
            raise ValueError("background_workers must be at least 1")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        base: Optional[EngineConfig] = None
    ) -> EngineConfig:
        """Apply TIMELINE_ENGINE_* overrides on top of `base` (defaults if None)."""
        env = os.environ if env is None else env
        config = base or cls()

        flow = config.flow
        pixels_per_day = _read(env, "PIXELS_PER_DAY", float)
        if pixels_per_day is not None:
            flow = replace(flow, pixels_per_day=pixels_per_day)
        lane_spacing = _read(env, "LANE_SPACING", float)
        if lane_spacing is not None:
            flow = replace(flow, lane_spacing=lane_spacing)

        cache = config.cache
        cache_size = _read(env, "CACHE_SIZE", int)
        if cache_size is not None:
            cache = replace(cache, max_entries=cache_size)

        workers = _read(env, "WORKERS", int)
        return replace(
            config,
            flow=flow,
            cache=cache,
            background_workers=workers if workers is not None else config.background_workers
        )
