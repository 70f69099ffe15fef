"""
Stream colors.

Color assignment is a pure function of its arguments: no global theme
lookup, no registry of already-used colors.
"""

from __future__ import annotations
from typing import Optional, Sequence, Tuple
import hashlib


RIVER_PALETTE: Tuple[str, ...] = (
    "#3B82F6",  # Electric blue
    "#EC4899",  # Hot pink
    "#22C55E",  # Lime green
    "#F97316",  # Sunset orange
    "#A855F7",  # Electric purple
    "#06B6D4",  # Cyan
    "#EF4444",  # Red
    "#FACC15",  # Yellow
)


def person_seed(person_id: str) -> int:
    """Stable integer seed for a person id (same on every interpreter run)."""
    digest = hashlib.sha256(person_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def color_for_person(
    person_id: str,
    index: Optional[int] = None,
    palette: Sequence[str] = RIVER_PALETTE
) -> str:
    """
    Color of a person's stream.

    With `index` (usually the lane index) the palette is cycled; without
    it the palette slot is derived from a SHA-256 seed of the person id.
    """
    if not palette:
        raise ValueError("palette must not be empty")
    if index is None:
        return palette[person_seed(person_id) % len(palette)]
    if index < 0:
        raise ValueError(f"index must not be negative, got {index}")
    return palette[index % len(palette)]
