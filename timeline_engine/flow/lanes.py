"""
Lane Assignment
===============

Deterministic ordering of people into river lanes.

STRATEGIES:
- person_id:        lexical order of person ids (default; a person keeps
                    their relative order as others are (de)selected)
- first_appearance: order of each person's earliest event, ties by id
- connected_groups: people who share events stay on adjacent lanes;
                    groups ordered by first appearance

The co-participation graph is built with networkx and used ONLY for
structure (connected components), never for ranking people.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple
from enum import Enum

import networkx as nx

from ..contracts.events import TimelineEvent


class LaneStrategy(Enum):
    PERSON_ID = "person_id"
    FIRST_APPEARANCE = "first_appearance"
    CONNECTED_GROUPS = "connected_groups"


class ParticipantGraph:
    """
    Undirected co-participation graph.

    Nodes are person ids; an edge joins two people who share at least one
    event, weighted by the number of shared events.
    """

    def __init__(self):
        self._graph = nx.Graph()

    @classmethod
    def from_events(
        cls,
        events: Iterable[TimelineEvent],
        people: Iterable[str]
    ) -> ParticipantGraph:
        """Graph restricted to `people`."""
        graph = cls()
        selected = set(people)
        graph._graph.add_nodes_from(sorted(selected))
        for event in events:
            involved = sorted(p for p in event.participant_ids if p in selected)
            for i, source in enumerate(involved):
                for target in involved[i + 1:]:
                    if graph._graph.has_edge(source, target):
                        graph._graph[source][target]["weight"] += 1
                    else:
                        graph._graph.add_edge(source, target, weight=1)
        return graph

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def shared_event_count(self, source: str, target: str) -> int:
        if not self._graph.has_edge(source, target):
            return 0
        return self._graph[source][target]["weight"]

    def connected_groups(self) -> List[Set[str]]:
        """Disjoint groups of people linked by shared events (arbitrary order)."""
        if self._graph.number_of_nodes() == 0:
            return []
        return [set(c) for c in nx.connected_components(self._graph)]


def _first_appearance_key(
    first_seen: Mapping[str, datetime]
):
    return lambda person_id: (first_seen[person_id], person_id)


def assign_lanes(
    people: Sequence[str],
    first_seen: Mapping[str, datetime],
    strategy: LaneStrategy = LaneStrategy.PERSON_ID,
    events: Iterable[TimelineEvent] = ()
) -> Tuple[str, ...]:
    """
    Lane order for `people`, index 0 first.

    `first_seen` maps every person to the time of their earliest placed
    event; `events` is only consulted by CONNECTED_GROUPS.
    """
    unique = sorted(set(people))
    if strategy is LaneStrategy.PERSON_ID:
        return tuple(unique)

    by_first = _first_appearance_key(first_seen)
    if strategy is LaneStrategy.FIRST_APPEARANCE:
        return tuple(sorted(unique, key=by_first))

    graph = ParticipantGraph.from_events(events, unique)
    groups = [sorted(group, key=by_first) for group in graph.connected_groups()]
    groups.sort(key=lambda group: by_first(group[0]))
    ordered: List[str] = []
    for group in groups:
        ordered.extend(group)
    return tuple(ordered)


def lane_center(lane_index: int, lane_spacing: float) -> float:
    """Perpendicular offset of a lane's centerline."""
    return lane_index * lane_spacing + lane_spacing / 2


def lane_positions(lane_order: Sequence[str], lane_spacing: float) -> Dict[str, float]:
    return {
        person_id: lane_center(index, lane_spacing)
        for index, person_id in enumerate(lane_order)
    }
