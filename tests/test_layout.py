"""
Tests for the single-axis layout engine.
"""

import math
import pytest
from datetime import timedelta

from timeline_engine.contracts import (
    ClusterCandidate,
    ClusterNode,
    DisplayMode,
    ErrorCode,
    EventCandidate,
    EventNode,
    EventType,
    NodeKind,
    Orientation,
    Point,
    Size,
    VisibleRange,
)
from timeline_engine.layout import (
    DEFAULT_DENSITY_THRESHOLDS,
    LayoutConfig,
    TimelineLayoutEngine,
    build_render_nodes,
    render_nodes_from_events,
)
from timeline_engine.observability import ObservabilityEngine
from timeline_engine.temporal import ZoomTier

from tests.fixtures import MONDAY, make_asset, make_event, undated_event


VIEWPORT = Size(400.0, 800.0)


def candidate(event_id, offset_days, event_type="text", has_media=False):
    return EventCandidate(
        event_id=event_id,
        time=MONDAY + timedelta(days=offset_days),
        event_type=event_type,
        has_media=has_media,
    )


def run_layout(nodes, mode=DisplayMode.MINIMAL, orientation=Orientation.VERTICAL,
               pixels_per_day=10.0, tier=ZoomTier.DAY, engine=None):
    engine = engine or TimelineLayoutEngine()
    result = engine.layout(nodes, mode, orientation, VIEWPORT, pixels_per_day, MONDAY, tier)
    assert result.is_success, result.error
    return result.value


class TestPositions:

    def test_offsets_are_fractional_days(self):
        nodes = run_layout([candidate("a", 0), candidate("b", 3.5)])
        assert [n.position for n in nodes] == pytest.approx([0.0, 35.0])

    def test_vertical_orientation_uses_centerline_x(self):
        nodes = run_layout([candidate("a", 0), candidate("b", 5)])
        assert nodes[1].marker_center == Point(200.0, 50.0)

    def test_horizontal_orientation_uses_centerline_y(self):
        nodes = run_layout([candidate("a", 0), candidate("b", 5)], orientation=Orientation.HORIZONTAL)
        assert nodes[1].marker_center == Point(50.0, 400.0)

    def test_input_order_does_not_matter(self):
        ordered = run_layout([candidate("a", 0), candidate("b", 5), candidate("c", 10)])
        shuffled = run_layout([candidate("c", 10), candidate("a", 0), candidate("b", 5)])
        assert ordered == shuffled

    def test_marker_radius_scales_with_tier(self):
        day = run_layout([candidate("a", 0)], tier=ZoomTier.DAY)[0]
        year = run_layout([candidate("a", 0)], tier=ZoomTier.YEAR, pixels_per_day=1000.0)[0]
        assert day.marker_radius == pytest.approx(6.0)
        assert year.marker_radius == pytest.approx(6.0 * 1.6)


class TestClustering:

    def test_close_events_become_one_cluster_at_centroid(self):
        nodes = run_layout([
            candidate("a", 0),
            candidate("b", 1 / 24),
            candidate("c", 3),
        ])

        assert len(nodes) == 2
        cluster, single = nodes
        assert isinstance(cluster, ClusterNode)
        assert cluster.kind is NodeKind.CLUSTER
        assert cluster.member_event_ids == ("a", "b")
        assert cluster.count == 2
        assert cluster.position == pytest.approx((0.0 + 10.0 / 24) / 2)
        assert cluster.marker_radius == pytest.approx(6.0 * 2.0)
        assert isinstance(single, EventNode)
        assert single.event_id == "c"

    def test_chains_merge_transitively(self):
        # consecutive gaps of 20px < 24px: one cluster even though a..d span 60px
        nodes = run_layout([candidate(i, k * 2) for k, i in enumerate("abcd")])
        assert len(nodes) == 1
        assert nodes[0].member_event_ids == ("a", "b", "c", "d")

    def test_spacing_depends_on_tier(self):
        nodes = [candidate("a", 0), candidate("b", 3)]   # 30px apart
        assert len(run_layout(nodes, tier=ZoomTier.DAY)) == 2      # spacing 24
        assert len(run_layout(nodes, tier=ZoomTier.MONTH)) == 1    # spacing 40

    def test_cluster_dominant_type(self):
        nodes = run_layout([
            candidate("a", 0, "photo"),
            candidate("b", 0.01, "text"),
            candidate("c", 0.02, "text"),
        ])
        assert nodes[0].dominant_type == "text"

    def test_cluster_radius_is_capped(self):
        many = [candidate(f"e{i}", i * 0.001) for i in range(64)]
        node = run_layout(many)[0]
        assert node.count == 64
        assert node.marker_radius == pytest.approx(6.0 * 2.5)

    def test_cluster_id_is_deterministic(self):
        first = run_layout([candidate("a", 0), candidate("b", 0.1)])[0]
        second = run_layout([candidate("b", 0.1), candidate("a", 0)])[0]
        assert first.cluster_id == second.cluster_id
        assert first.cluster_id.startswith("cluster_")

    def test_upstream_cluster_candidate_kept(self):
        burst = ClusterCandidate(
            cluster_id="burst_1",
            start=MONDAY,
            end=MONDAY + timedelta(minutes=5),
            member_event_ids=("p1", "p2", "p3"),
            member_types=("photo", "photo", "photo"),
        )
        nodes = run_layout([burst, candidate("far", 10)])

        assert nodes[0].cluster_id == "burst_1"
        assert nodes[0].count == 3
        assert nodes[0].end == MONDAY + timedelta(minutes=5)
        assert nodes[1].event_id == "far"

    def test_configured_spacing_overrides_tier(self):
        engine = TimelineLayoutEngine(LayoutConfig(min_marker_spacing=0.0))
        nodes = run_layout([candidate("a", 0), candidate("b", 0.001)], engine=engine)
        assert len(nodes) == 2


class TestDisplayModes:

    def test_minimal_mode_hides_crowded_labels(self):
        nodes = run_layout([candidate(c, k * 3) for k, c in enumerate("abcd")])   # 30px apart
        assert [n.is_label_visible for n in nodes] == [True, False, True, False]
        assert all(n.card_rect is None and n.connector is None for n in nodes)

    def test_maximal_cards_alternate_sides(self):
        nodes = run_layout(
            [candidate("a", 0), candidate("b", 30)],
            mode=DisplayMode.MAXIMAL
        )
        left, right = nodes[0].card_rect, nodes[1].card_rect

        assert left.right == pytest.approx(200.0 - 24.0)
        assert right.left == pytest.approx(200.0 + 24.0)
        assert left.width == 280.0

    def test_maximal_cards_do_not_overlap_on_one_side(self):
        nodes = run_layout(
            [candidate("a", 0), candidate("b", 1), candidate("c", 2)],
            mode=DisplayMode.MAXIMAL,
            pixels_per_day=30.0
        )
        first, third = nodes[0].card_rect, nodes[2].card_rect

        assert first.top == pytest.approx(-60.0)
        assert third.top == pytest.approx(76.0)
        assert not first.overlaps(third)

    def test_connector_runs_from_marker_to_facing_edge(self):
        nodes = run_layout(
            [candidate("a", 0), candidate("b", 1), candidate("c", 2)],
            mode=DisplayMode.MAXIMAL,
            pixels_per_day=30.0
        )
        connector = nodes[2].connector
        assert connector.start == Point(200.0, 60.0)
        assert connector.end == Point(176.0, 136.0)

    def test_horizontal_cards_above_then_below(self):
        nodes = run_layout(
            [candidate("a", 0), candidate("b", 40)],
            mode=DisplayMode.MAXIMAL,
            orientation=Orientation.HORIZONTAL
        )
        above, below = nodes[0].card_rect, nodes[1].card_rect
        assert above.bottom == pytest.approx(400.0 - 24.0)
        assert below.top == pytest.approx(400.0 + 24.0)
        assert nodes[0].connector.end == Point(0.0, 376.0)

    def test_card_heights(self):
        nodes = run_layout(
            [candidate("media", 0, has_media=True), candidate("plain", 30),
             candidate("x", 60), candidate("y", 60.001)],
            mode=DisplayMode.MAXIMAL
        )
        assert nodes[0].card_rect.height == 240.0
        assert nodes[1].card_rect.height == 120.0
        assert nodes[2].card_rect.height == 100.0


class TestFailureModes:

    @pytest.mark.parametrize("pixels_per_day", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_scale_is_failure_result(self, pixels_per_day):
        result = TimelineLayoutEngine().layout(
            [candidate("a", 0)], DisplayMode.MINIMAL, Orientation.VERTICAL,
            VIEWPORT, pixels_per_day, MONDAY
        )
        assert result.is_failure
        assert result.error.code is ErrorCode.INVALID_CONFIGURATION

    def test_invalid_scale_fails_even_without_nodes(self):
        result = TimelineLayoutEngine().layout(
            [], DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 0.0, MONDAY
        )
        assert result.is_failure

    def test_empty_input_is_empty_success(self):
        assert run_layout([]) == ()

    def test_negative_viewport_raises(self):
        with pytest.raises(ValueError):
            TimelineLayoutEngine().layout(
                [candidate("a", 0)], DisplayMode.MINIMAL, Orientation.VERTICAL,
                (-1.0, 100.0), 10.0, MONDAY
            )

    def test_wrong_enum_types_raise(self):
        with pytest.raises(TypeError):
            TimelineLayoutEngine().layout(
                [candidate("a", 0)], "minimal", Orientation.VERTICAL, VIEWPORT, 10.0, MONDAY
            )

    def test_rejection_is_audited(self):
        observability = ObservabilityEngine()
        TimelineLayoutEngine(observability=observability).layout(
            [candidate("a", 0)], DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 0.0, MONDAY
        )
        entries = observability.get_layer_log("layout")
        assert entries[-1].metadata_value("outcome") == "rejected"


class TestRenderNodesFromEvents:

    def test_undated_events_reported(self):
        events = [
            make_event("b", MONDAY + timedelta(days=1), title="Second"),
            undated_event("u"),
            make_event("a", MONDAY, EventType.PHOTO.value, assets=[make_asset("x")]),
        ]
        candidates, excluded = render_nodes_from_events(events)

        assert [c.event_id for c in candidates] == ["a", "b"]
        assert candidates[0].has_media
        assert candidates[0].title == "Untitled Event"
        assert candidates[1].title == "Second"
        assert excluded == ("u",)

    def test_layout_events_defaults_min_date_to_earliest(self):
        observability = ObservabilityEngine()
        engine = TimelineLayoutEngine(observability=observability)
        result, excluded = engine.layout_events(
            [make_event("late", MONDAY + timedelta(days=2)), make_event("early", MONDAY), undated_event()],
            DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 30.0
        )

        assert result.is_success
        assert [n.node_id for n in result.value] == ["early", "late"]
        assert result.value[0].position == 0.0
        assert result.value[1].position == pytest.approx(60.0)
        assert excluded == ("undated",)
        assert observability.excluded_count("layout") == 1


def crowded_day(count, start=MONDAY):
    """`count` events one minute apart, all inside one calendar day."""
    return [make_event(f"d{i}", start + timedelta(minutes=i)) for i in range(count)]


class TestDensityPreClustering:

    def test_default_thresholds(self):
        assert DEFAULT_DENSITY_THRESHOLDS == {
            ZoomTier.YEAR: 20, ZoomTier.MONTH: 30, ZoomTier.WEEK: 15, ZoomTier.DAY: 8,
        }
        assert LayoutConfig().density_thresholds == DEFAULT_DENSITY_THRESHOLDS

    def test_bucket_over_threshold_becomes_one_cluster(self):
        events = crowded_day(9) + [make_event("later", MONDAY + timedelta(days=3))]
        candidates, excluded = build_render_nodes(events, ZoomTier.DAY)

        assert excluded == ()
        assert len(candidates) == 2
        cluster = candidates[0]
        assert isinstance(cluster, ClusterCandidate)
        assert cluster.cluster_id == "day_20240304T00"
        assert cluster.member_event_ids == tuple(f"d{i}" for i in range(9))
        assert cluster.start == MONDAY
        assert cluster.end == MONDAY + timedelta(minutes=8)
        assert candidates[1].node_id == "later"

    def test_bucket_at_threshold_stays_expanded(self):
        candidates, _ = build_render_nodes(crowded_day(8), ZoomTier.DAY)
        assert all(isinstance(c, EventCandidate) for c in candidates)
        assert len(candidates) == 8

    def test_expanded_cluster_passes_through(self):
        candidates, _ = build_render_nodes(
            crowded_day(9), ZoomTier.DAY, expanded_cluster_ids=["day_20240304T00"]
        )
        assert [c.node_id for c in candidates] == [f"d{i}" for i in range(9)]

    def test_focus_never_pre_clusters(self):
        candidates, _ = build_render_nodes(crowded_day(40), ZoomTier.FOCUS)
        assert all(c.kind is NodeKind.EVENT for c in candidates)

    def test_week_threshold_counts_the_whole_week(self):
        events = [make_event(f"w{i}", MONDAY + timedelta(hours=8 * i)) for i in range(16)]
        candidates, _ = build_render_nodes(events, ZoomTier.WEEK)
        assert [c.node_id for c in candidates] == ["week_20240304T00"]

    def test_visible_range_filters_half_open(self):
        events = [
            make_event("before", MONDAY - timedelta(days=1)),
            make_event("start", MONDAY),
            make_event("end", MONDAY + timedelta(days=2)),
        ]
        window = VisibleRange(MONDAY, MONDAY + timedelta(days=2))
        candidates, _ = build_render_nodes(events, ZoomTier.DAY, visible_range=window)
        assert [c.node_id for c in candidates] == ["start"]

    def test_undated_events_still_reported(self):
        _, excluded = build_render_nodes([undated_event("u")] + crowded_day(2), ZoomTier.DAY)
        assert excluded == ("u",)

    def test_tier_type_checked(self):
        with pytest.raises(TypeError):
            build_render_nodes(crowded_day(2), "day")

    def test_layout_events_produces_cluster_node(self):
        engine = TimelineLayoutEngine()
        events = crowded_day(9) + [make_event("later", MONDAY + timedelta(days=3))]
        result, _ = engine.layout_events(
            events, DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 10.0
        )

        cluster, later = result.unwrap()
        assert isinstance(cluster, ClusterNode)
        assert cluster.cluster_id == "day_20240304T00"
        assert cluster.count == 9
        assert cluster.position == 0.0
        assert later.node_id == "later"
        assert later.position == pytest.approx(30.0)

    def test_configured_threshold_used(self):
        engine = TimelineLayoutEngine(LayoutConfig(density_thresholds={ZoomTier.DAY: 2}))
        result, _ = engine.layout_events(
            crowded_day(3), DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 10.0
        )
        (node,) = result.unwrap()
        assert node.cluster_id == "day_20240304T00"
        assert node.count == 3

    def test_visible_range_start_is_default_origin(self):
        engine = TimelineLayoutEngine()
        window = VisibleRange(MONDAY - timedelta(days=1), MONDAY + timedelta(days=7))
        result, _ = engine.layout_events(
            [make_event("a", MONDAY)], DisplayMode.MINIMAL, Orientation.VERTICAL, VIEWPORT, 10.0,
            visible_range=window
        )
        assert result.unwrap()[0].position == pytest.approx(10.0)

    def test_invalid_threshold_rejected(self):
        with pytest.raises(ValueError):
            LayoutConfig(density_thresholds={ZoomTier.DAY: 0})
