"""
Multi-Participant Flow Layer ("river" view)

RESPONSIBILITY: One continuous stream per person, converging at shared events
ALLOWED INPUTS: TimelineEvent collections, selected person ids
OUTPUTS: RiverFlowPath per person, RiverFlowIntersection per convergence

WHAT THIS LAYER MUST NOT DO:
============================
- Reorder a person's events
- Move a lane because somebody else was (de)selected (person_id strategy)
- Fail because one event is undated

BOUNDARY ENFORCEMENT:
=====================
- A node is a junction iff its event has >= 2 participants
- A shared event sits at the SAME point in every selected participant's path
- People without events produce no path
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import math

from ..contracts.events import TimelineEvent, all_participant_ids
from ..contracts.geometry import Point
from ..contracts.views import (
    FlowLayout, RiverFlowIntersection, RiverFlowNode, RiverFlowPath,
)
from ..observability import AuditEventType, ObservabilityEngine
from ..temporal.resolution import resolve_events
from ..temporal.tiers import date_to_position
from .curves import smooth_curve
from .lanes import LaneStrategy, ParticipantGraph, assign_lanes, lane_center, lane_positions
from .palette import RIVER_PALETTE, color_for_person

logger = logging.getLogger(__name__)


@dataclass
class FlowConfig:
    """
    Configuration for the river view.

    color_by_lane: cycle the palette by lane index instead of hashing ids
    """
    lane_spacing: float = 150.0
    pixels_per_day: float = 3.0
    base_stroke_width: float = 4.0
    max_stroke_width: float = 10.0
    lane_strategy: Union[LaneStrategy, str] = LaneStrategy.PERSON_ID
    color_by_lane: bool = False
    palette: Tuple[str, ...] = RIVER_PALETTE

    def __post_init__(self):
        for name in ("lane_spacing", "pixels_per_day", "base_stroke_width"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number")
        if self.max_stroke_width < self.base_stroke_width:
            raise ValueError("max_stroke_width must not be less than base_stroke_width")
        if not self.palette:
            raise ValueError("palette must not be empty")
        self.lane_strategy = LaneStrategy(self.lane_strategy)
        self.palette = tuple(self.palette)

    def stroke_width(self, converging: int) -> float:
        """Width of a stream where `converging` streams meet (1 = plain)."""
        width = self.base_stroke_width * (1.0 + 0.5 * (max(converging, 1) - 1))
        return min(self.max_stroke_width, width)


class RiverFlowBuilder:
    """
    Builds per-person streams and their convergence points.
    """

    def __init__(
        self,
        config: Optional[FlowConfig] = None,
        observability: Optional[ObservabilityEngine] = None
    ):
        self._config = config or FlowConfig()
        self._observability = observability

    @property
    def config(self) -> FlowConfig:
        return self._config

    def build_flows(
        self,
        events: Iterable[TimelineEvent],
        selected_people: Iterable[str] = ()
    ) -> List[RiverFlowPath]:
        """One path per selected person with at least one event, in lane order."""
        return list(self.build_flow_layout(events, selected_people).paths)

    def build_flow_layout(
        self,
        events: Iterable[TimelineEvent],
        selected_people: Iterable[str] = (),
        start_date: Optional[datetime] = None
    ) -> FlowLayout:
        """
        Paths, intersections, lane order and excluded (undated) event ids.

        `start_date` anchors x = 0; it defaults to the earliest event any
        selected person takes part in.
        """
        if isinstance(selected_people, str):
            raise TypeError("selected_people must be a collection of person ids, not a string")
        event_list = list(events)

        if self._observability:
            with self._observability.measure("flow_duration_ms"):
                layout = self._build(event_list, selected_people, start_date)
            self._observability.record_exclusions("flow", layout.excluded_event_ids)
            self._observability.log_audit(
                layer="flow",
                action="build_flows",
                event_type=AuditEventType.FLOW,
                paths=str(len(layout.paths)),
                intersections=str(len(layout.intersections))
            )
        else:
            layout = self._build(event_list, selected_people, start_date)
            if layout.excluded_event_ids:
                logger.warning(
                    "flow: excluded %d event(s) without a resolvable date",
                    len(layout.excluded_event_ids)
                )
        return layout

    def participant_graph(
        self,
        events: Iterable[TimelineEvent],
        selected_people: Iterable[str] = ()
    ) -> ParticipantGraph:
        """Co-participation graph of the selected people (all if empty)."""
        event_list = list(events)
        people = list(selected_people) or all_participant_ids(event_list)
        return ParticipantGraph.from_events(event_list, people)

    # -------------------------------------------------------------------------

    def _build(
        self,
        events: Sequence[TimelineEvent],
        selected_people: Iterable[str],
        start_date: Optional[datetime]
    ) -> FlowLayout:
        config = self._config
        resolved = resolve_events(events)
        selected = set(selected_people) or set(all_participant_ids(events))

        # Events per selected person, chronological
        per_person: Dict[str, List[Tuple[TimelineEvent, datetime]]] = {}
        for event, instant in resolved.placed:
            for person_id in event.participant_ids:
                if person_id in selected:
                    per_person.setdefault(person_id, []).append((event, instant))

        if not per_person:
            return FlowLayout(paths=(), excluded_event_ids=resolved.excluded_event_ids)

        first_seen = {p: items[0][1] for p, items in per_person.items()}
        lane_order = assign_lanes(
            list(per_person),
            first_seen,
            config.lane_strategy,
            (event for event, _ in resolved.placed)
        )
        lane_index = {person_id: i for i, person_id in enumerate(lane_order)}
        lane_y = lane_positions(lane_order, config.lane_spacing)
        colors = {
            person_id: color_for_person(
                person_id,
                lane_index[person_id] if config.color_by_lane else None,
                config.palette
            )
            for person_id in lane_order
        }

        origin = start_date if start_date is not None else min(first_seen.values())

        # Position of every placed event is shared by all of its selected participants
        positions: Dict[str, Point] = {}
        converging: Dict[str, Tuple[str, ...]] = {}
        for event, instant in resolved.placed:
            people = tuple(p for p in lane_order if event.involves(p))
            if not people:
                continue
            x = date_to_position(instant, origin, config.pixels_per_day)
            y = sum(lane_y[p] for p in people) / len(people)
            positions[event.id] = Point(x, y)
            converging[event.id] = people

        paths = []
        for person_id in lane_order:
            nodes = tuple(
                self._node(event, positions[event.id], converging[event.id], colors)
                for event, _ in per_person[person_id]
            )
            paths.append(RiverFlowPath(
                person_id=person_id,
                color=colors[person_id],
                lane_index=lane_index[person_id],
                nodes=nodes,
                path=smooth_curve([node.position for node in nodes])
            ))

        intersections = tuple(
            RiverFlowIntersection(
                event_id=event.id,
                position=positions[event.id],
                person_ids=converging[event.id],
                colors=tuple(colors[p] for p in converging[event.id]),
                stroke_width=config.stroke_width(len(converging[event.id]))
            )
            for event, _ in resolved.placed
            if len(converging.get(event.id, ())) >= 2
        )

        logger.debug(
            "built %d stream(s) with %d intersection(s) over %d lane(s)",
            len(paths), len(intersections), len(lane_order)
        )
        return FlowLayout(
            paths=tuple(paths),
            intersections=intersections,
            excluded_event_ids=resolved.excluded_event_ids,
            lane_order=lane_order
        )

    def _node(
        self,
        event: TimelineEvent,
        position: Point,
        people: Tuple[str, ...],
        colors: Dict[str, str]
    ) -> RiverFlowNode:
        return RiverFlowNode(
            event=event,
            position=position,
            is_junction=len(event.participant_ids) >= 2,
            participant_ids=event.participant_ids,
            converging_person_ids=people,
            blend_colors=tuple(colors[p] for p in people),
            stroke_width=self._config.stroke_width(len(people))
        )


def build_flows(
    events: Iterable[TimelineEvent],
    selected_people: Iterable[str] = ()
) -> List[RiverFlowPath]:
    """Build streams with the default configuration."""
    return RiverFlowBuilder().build_flows(events, selected_people)


__all__ = [
    'FlowConfig',
    'LaneStrategy',
    'ParticipantGraph',
    'RIVER_PALETTE',
    'RiverFlowBuilder',
    'assign_lanes',
    'build_flows',
    'color_for_person',
    'lane_center',
    'smooth_curve',
]
