"""
Tests for the tier model and date resolution.
"""

import pytest
from datetime import datetime, timedelta, timezone

from timeline_engine.contracts import FuzzyDate, FuzzyGranularity, Season
from timeline_engine.temporal import (
    LATEST_INSTANT,
    ZoomTier,
    align_to_bucket,
    bucket_key,
    bucket_label,
    date_to_position,
    fuzzy_interval,
    fuzzy_midpoint,
    next_bucket_start,
    pixels_per_day_for_zoom_level,
    position_to_date,
    resolve_event_time,
    resolve_events,
    tier_for_zoom_level,
)

from tests.fixtures import MONDAY, make_event, summer_event, undated_event


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestZoomTier:

    def test_tiers_ordered_coarsest_first(self):
        assert ZoomTier.YEAR < ZoomTier.MONTH < ZoomTier.WEEK < ZoomTier.DAY < ZoomTier.FOCUS
        assert sorted([ZoomTier.DAY, ZoomTier.YEAR, ZoomTier.FOCUS]) == [
            ZoomTier.YEAR, ZoomTier.DAY, ZoomTier.FOCUS
        ]

    def test_coarser_tiers_render_larger(self):
        scales = [tier.spec.marker_scale for tier in ZoomTier]
        assert scales == sorted(scales, reverse=True)

    def test_canonical_durations(self):
        assert ZoomTier.YEAR.spec.bucket_duration == timedelta(days=365)
        assert ZoomTier.MONTH.spec.bucket_duration == timedelta(days=30)
        assert ZoomTier.WEEK.spec.bucket_duration == timedelta(days=7)
        assert ZoomTier.DAY.spec.bucket_duration == timedelta(days=1)
        assert ZoomTier.FOCUS.spec.bucket_duration == timedelta(hours=1)

    def test_comparison_with_other_types_unsupported(self):
        with pytest.raises(TypeError):
            ZoomTier.DAY < 3


class TestBucketAlignment:

    def test_alignment_per_tier(self):
        instant = utc(2024, 3, 6, 14, 35)   # a Wednesday
        assert align_to_bucket(instant, ZoomTier.YEAR) == utc(2024, 1, 1)
        assert align_to_bucket(instant, ZoomTier.MONTH) == utc(2024, 3, 1)
        assert align_to_bucket(instant, ZoomTier.WEEK) == utc(2024, 3, 4)
        assert align_to_bucket(instant, ZoomTier.DAY) == utc(2024, 3, 6)
        assert align_to_bucket(instant, ZoomTier.FOCUS) == utc(2024, 3, 6, 14)

    def test_naive_instants_are_utc(self):
        assert align_to_bucket(datetime(2024, 3, 6, 14, 35), ZoomTier.DAY) == utc(2024, 3, 6)

    def test_aware_instants_are_converted(self):
        plus_two = timezone(timedelta(hours=2))
        instant = datetime(2024, 3, 7, 1, 0, tzinfo=plus_two)   # 23:00 UTC on the 6th
        assert align_to_bucket(instant, ZoomTier.DAY) == utc(2024, 3, 6)

    def test_next_bucket_is_calendar_correct(self):
        assert next_bucket_start(utc(2024, 12, 1), ZoomTier.MONTH) == utc(2025, 1, 1)
        assert next_bucket_start(utc(2024, 2, 1), ZoomTier.MONTH) == utc(2024, 3, 1)
        assert next_bucket_start(utc(2024, 1, 1), ZoomTier.YEAR) == utc(2025, 1, 1)
        assert next_bucket_start(utc(2024, 3, 4), ZoomTier.WEEK) == utc(2024, 3, 11)

    @pytest.mark.parametrize("start, tier", [
        (utc(9999, 1, 1), ZoomTier.YEAR),
        (utc(9999, 12, 1), ZoomTier.MONTH),
        (utc(9999, 12, 27), ZoomTier.WEEK),
        (utc(9999, 12, 31), ZoomTier.DAY),
        (utc(9999, 12, 31, 23), ZoomTier.FOCUS),
    ])
    def test_last_bucket_ends_at_ceiling(self, start, tier):
        assert next_bucket_start(start, tier) == LATEST_INSTANT

    def test_labels(self):
        start = utc(2024, 3, 4, 9)
        assert bucket_label(start, ZoomTier.YEAR) == "2024"
        assert bucket_label(start, ZoomTier.MONTH) == "Mar 2024"
        assert bucket_label(start, ZoomTier.WEEK) == "Week 10, 2024"
        assert bucket_label(start, ZoomTier.DAY) == "Mar 4, 2024"
        assert bucket_label(start, ZoomTier.FOCUS) == "Mar 4, 2024 09:00"

    def test_bucket_key_is_stable(self):
        assert bucket_key(utc(2024, 3, 4), ZoomTier.WEEK) == "week_20240304T00"


class TestZoomLevelMapping:

    @pytest.mark.parametrize("zoom, tier", [
        (0.0, ZoomTier.YEAR),
        (0.19, ZoomTier.YEAR),
        (0.2, ZoomTier.MONTH),
        (0.5, ZoomTier.WEEK),
        (0.7, ZoomTier.DAY),
        (0.85, ZoomTier.FOCUS),
        (1.0, ZoomTier.FOCUS),
    ])
    def test_tier_for_zoom_level(self, zoom, tier):
        assert tier_for_zoom_level(zoom) == tier

    def test_pixels_per_day_interpolates(self):
        assert pixels_per_day_for_zoom_level(0.0) == pytest.approx(0.2)
        assert pixels_per_day_for_zoom_level(1.0) == pytest.approx(60.0)
        assert pixels_per_day_for_zoom_level(0.5) == pytest.approx(30.1)

    @pytest.mark.parametrize("zoom", [-0.01, 1.01])
    def test_out_of_range_zoom_rejected(self, zoom):
        with pytest.raises(ValueError):
            tier_for_zoom_level(zoom)
        with pytest.raises(ValueError):
            pixels_per_day_for_zoom_level(zoom)

    def test_position_uses_fractional_days(self):
        assert date_to_position(MONDAY + timedelta(hours=12), MONDAY, 10.0) == pytest.approx(5.0)
        assert date_to_position(MONDAY - timedelta(days=2), MONDAY, 10.0) == pytest.approx(-20.0)

    def test_position_round_trip(self):
        instant = MONDAY + timedelta(days=3, hours=6)
        position = date_to_position(instant, MONDAY, 7.5)
        assert position_to_date(position, MONDAY, 7.5) == instant

    def test_position_to_date_rejects_zero_scale(self):
        with pytest.raises(ValueError):
            position_to_date(10.0, MONDAY, 0.0)


class TestFuzzyResolution:

    def test_winter_spans_the_new_year(self):
        winter = FuzzyDate.for_season(2020, Season.WINTER)
        assert fuzzy_interval(winter) == (utc(2020, 12, 1), utc(2021, 3, 1))
        assert fuzzy_midpoint(winter) == utc(2021, 1, 15)

    def test_summer_midpoint(self):
        assert fuzzy_midpoint(FuzzyDate.for_season(1998, Season.SUMMER)) == utc(1998, 7, 17)

    def test_decade_midpoint(self):
        assert fuzzy_midpoint(FuzzyDate.for_decade(1970)) == utc(1975, 1, 1)

    def test_month_and_day(self):
        assert fuzzy_interval(FuzzyDate.for_month(2024, 2)) == (utc(2024, 2, 1), utc(2024, 3, 1))
        day = FuzzyDate(granularity=FuzzyGranularity.DAY, year=2024, month=3, day=4)
        assert fuzzy_midpoint(day) == utc(2024, 3, 4, 12)

    def test_missing_component_is_unresolvable(self):
        assert fuzzy_interval(FuzzyDate(granularity=FuzzyGranularity.MONTH, year=2024)) is None
        assert fuzzy_interval(FuzzyDate(granularity=FuzzyGranularity.SEASON, year=2024)) is None
        assert fuzzy_interval(FuzzyDate(granularity=FuzzyGranularity.YEAR)) is None

    def test_impossible_date_is_unresolvable(self):
        february_30 = FuzzyDate(granularity=FuzzyGranularity.DAY, year=2023, month=2, day=30)
        assert fuzzy_interval(february_30) is None

    def test_event_resolution(self):
        assert resolve_event_time(make_event("e", MONDAY)) == MONDAY
        assert resolve_event_time(summer_event()) == utc(1998, 7, 17)
        assert resolve_event_time(undated_event()) is None

    def test_resolve_events_sorts_and_excludes(self):
        late = make_event("late", MONDAY + timedelta(days=1))
        tie_a = make_event("tie_a", MONDAY)
        tie_b = make_event("tie_b", MONDAY)
        resolved = resolve_events([late, undated_event("x"), tie_a, tie_b])

        assert [e.id for e in resolved.events] == ["tie_a", "tie_b", "late"]
        assert resolved.excluded_event_ids == ("x",)
        assert resolved.earliest == MONDAY
