"""
Conflict detection over already-fetched time slots.

Pure computation: no store access, no side effects.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from typing import TypeVar

from campus.services.timeslot import TimeSlot

K = TypeVar("K", bound=Hashable)


def find_overlapping(candidate: TimeSlot, existing: Iterable[tuple[K, TimeSlot]]) -> list[K]:
    """Keys of every existing slot that overlaps the candidate, in input order."""
    return [key for key, slot in existing if slot.overlaps(candidate)]
