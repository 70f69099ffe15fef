"""
Overlap Resolution
==================

Chronological sweep that folds markers closer than a tier's minimum
spacing into cluster groups.

GUARANTEES:
- A chain of close markers becomes ONE group (transitive merging)
- Groups never interleave: group order follows candidate order
- No state survives between calls
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Sequence, Tuple
import hashlib

from ..aggregation import dominant_category
from ..contracts.views import ClusterCandidate, RenderNode


@dataclass(frozen=True)
class PlacedCandidate:
    """A candidate with its resolved axis offset."""
    candidate: RenderNode
    offset: float


@dataclass(frozen=True)
class CandidateGroup:
    """
    One or more adjacent candidates that render as a single marker.

    `offset` is the centroid of the member candidates' offsets.
    """
    members: Tuple[PlacedCandidate, ...]

    @property
    def offset(self) -> float:
        return sum(m.offset for m in self.members) / len(self.members)

    @property
    def is_single(self) -> bool:
        return len(self.members) == 1

    @property
    def is_cluster(self) -> bool:
        return not self.is_single or isinstance(self.members[0].candidate, ClusterCandidate)

    @property
    def member_event_ids(self) -> Tuple[str, ...]:
        ids: List[str] = []
        for member in self.members:
            ids.extend(member.candidate.member_event_ids)
        return tuple(ids)

    @property
    def member_types(self) -> Tuple[str, ...]:
        types: List[str] = []
        for member in self.members:
            types.extend(member.candidate.member_types)
        return tuple(types)

    @property
    def start(self) -> datetime:
        return min(m.candidate.time for m in self.members)

    @property
    def end(self) -> datetime:
        return max(_candidate_end(m.candidate) for m in self.members)

    @property
    def dominant_type(self) -> str:
        return dominant_category(self.member_types)

    @property
    def cluster_id(self) -> str:
        if self.is_single:
            return self.members[0].candidate.node_id
        digest = hashlib.sha256("|".join(self.member_event_ids).encode()).hexdigest()[:12]
        return f"cluster_{digest}"


def _candidate_end(candidate: RenderNode) -> datetime:
    if isinstance(candidate, ClusterCandidate):
        return candidate.end
    return candidate.time


def sweep_clusters(
    placed: Sequence[PlacedCandidate],
    min_spacing: float
) -> List[CandidateGroup]:
    """
    Group candidates whose consecutive offset gap is below `min_spacing`.

    `placed` must already be in chronological order.
    """
    groups: List[CandidateGroup] = []
    current: List[PlacedCandidate] = []
    for item in placed:
        if current and item.offset - current[-1].offset >= min_spacing:
            groups.append(CandidateGroup(tuple(current)))
            current = []
        current.append(item)
    if current:
        groups.append(CandidateGroup(tuple(current)))
    return groups
