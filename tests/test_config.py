"""
Tests for engine configuration and environment overrides.
"""

import pytest

from timeline_engine.caching import CacheConfig
from timeline_engine.config import EngineConfig
from timeline_engine.flow import FlowConfig, LaneStrategy
from timeline_engine.ingestion import AssetClusteringConfig
from timeline_engine.layout import LayoutConfig


class TestEngineConfig:

    def test_defaults_filled_in(self):
        config = EngineConfig()
        assert config.flow.lane_spacing == 150.0
        assert config.cache.max_entries == 64
        assert config.layout.card_width == 280.0
        assert config.ingestion.temporal_threshold_minutes == 60
        assert config.background_workers == 1

    def test_explicit_sections_kept(self):
        config = EngineConfig(flow=FlowConfig(lane_strategy=LaneStrategy.FIRST_APPEARANCE))
        assert config.flow.lane_strategy is LaneStrategy.FIRST_APPEARANCE

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            EngineConfig(background_workers=0)

    @pytest.mark.parametrize("factory", [
        lambda: LayoutConfig(base_marker_radius=0.0),
        lambda: LayoutConfig(max_cluster_scale=0.5),
        lambda: FlowConfig(lane_spacing=-1.0),
        lambda: FlowConfig(base_stroke_width=6.0, max_stroke_width=5.0),
        lambda: FlowConfig(lane_strategy="alphabetical"),
        lambda: CacheConfig(max_entries=0),
        lambda: AssetClusteringConfig(spatial_threshold_meters=-1.0),
    ])
    def test_section_validation(self, factory):
        with pytest.raises(ValueError):
            factory()


class TestFromEnv:

    def test_overrides_applied(self):
        config = EngineConfig.from_env({
            "TIMELINE_ENGINE_PIXELS_PER_DAY": "5.5",
            "TIMELINE_ENGINE_LANE_SPACING": "90",
            "TIMELINE_ENGINE_CACHE_SIZE": "8",
            "TIMELINE_ENGINE_WORKERS": "2",
        })
        assert config.flow.pixels_per_day == 5.5
        assert config.flow.lane_spacing == 90.0
        assert config.cache.max_entries == 8
        assert config.background_workers == 2

    def test_missing_and_blank_values_ignored(self):
        config = EngineConfig.from_env({"TIMELINE_ENGINE_CACHE_SIZE": "  "})
        assert config.cache.max_entries == 64

    def test_base_config_preserved(self):
        base = EngineConfig(flow=FlowConfig(lane_spacing=200.0))
        config = EngineConfig.from_env({"TIMELINE_ENGINE_PIXELS_PER_DAY": "2"}, base=base)
        assert config.flow.lane_spacing == 200.0
        assert config.flow.pixels_per_day == 2.0

    def test_unparseable_value(self):
        with pytest.raises(ValueError, match="TIMELINE_ENGINE_WORKERS"):
            EngineConfig.from_env({"TIMELINE_ENGINE_WORKERS": "many"})

    def test_out_of_range_value(self):
        with pytest.raises(ValueError):
            EngineConfig.from_env({"TIMELINE_ENGINE_PIXELS_PER_DAY": "-3"})
