# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule conflict detection.

Two slots conflict when they meet on the same day and their half-open
``[start, end)`` intervals intersect. Slots that merely touch (one ends
exactly when the other begins) do not conflict.

Detection groups slots by day and sweeps them in start-time order while
keeping a min-heap of the intervals still running, so a set of n slots
with k conflicting pairs costs O(n log n + k).
"""

from __future__ import annotations

import heapq
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time

from siakad.domains.enrollment.models import DayOfWeek, ScheduleSlot
from siakad.utils.datetime import format_clock


@dataclass(frozen=True)
class SlotConflict:
    """A pair of overlapping slots.

    The pair is normalized so that ``first_slot_id < second_slot_id``.

    Attributes:
        first_slot_id: Lower slot id of the pair.
        second_slot_id: Higher slot id of the pair.
        day: Day both slots meet.
        overlap_start: Start of the shared window.
        overlap_end: End of the shared window.
    """

    first_slot_id: str
    second_slot_id: str
    day: DayOfWeek
    overlap_start: time
    overlap_end: time

    @classmethod
    def between(cls, a: ScheduleSlot, b: ScheduleSlot) -> SlotConflict:
        first, second = sorted((a.id, b.id))
        return cls(
            first_slot_id=first,
            second_slot_id=second,
            day=a.day,
            overlap_start=max(a.start_time, b.start_time),
            overlap_end=min(a.end_time, b.end_time),
        )

    @property
    def slot_ids(self) -> tuple[str, str]:
        return (self.first_slot_id, self.second_slot_id)

    def describe(self) -> str:
        return (
            f"{self.first_slot_id} and {self.second_slot_id} overlap on "
            f"{self.day.value} {format_clock(self.overlap_start)}-{format_clock(self.overlap_end)}"
        )


def slots_overlap(a: ScheduleSlot, b: ScheduleSlot) -> bool:
    """Check a single pair of slots for a time conflict."""
    return a.day == b.day and a.start_time < b.end_time and b.start_time < a.end_time


class ConflictDetector:
    """Finds pairwise time conflicts in a set of schedule slots."""

    def find_conflicts(self, slots: Iterable[ScheduleSlot]) -> list[SlotConflict]:
        """Report every overlapping pair of slots.

        Args:
            slots: Candidate slots; repeated ids are considered once.

        Returns:
            Conflicts sorted by day, window and slot ids. The result does
            not depend on the order of the input.
        """
        by_day: dict[DayOfWeek, list[ScheduleSlot]] = defaultdict(list)
        seen: set[str] = set()
        for slot in slots:
            if slot.id in seen:
                continue
            seen.add(slot.id)
            by_day[slot.day].append(slot)

        conflicts: list[SlotConflict] = []
        for day_slots in by_day.values():
            conflicts.extend(self._sweep(day_slots))

        conflicts.sort(
            key=lambda c: (c.day.index, c.overlap_start, c.first_slot_id, c.second_slot_id)
        )
        return conflicts

    def conflicts_with(
        self,
        candidate: ScheduleSlot,
        slots: Iterable[ScheduleSlot],
    ) -> list[SlotConflict]:
        """Report the slots a single candidate would collide with."""
        return [
            SlotConflict.between(candidate, other)
            for other in slots
            if other.id != candidate.id and slots_overlap(candidate, other)
        ]

    @staticmethod
    def _sweep(day_slots: list[ScheduleSlot]) -> list[SlotConflict]:
        ordered = sorted(day_slots, key=lambda s: (s.start_time, s.end_time, s.id))
        # (end_time, slot_id, slot) of intervals still running
        active: list[tuple[time, str, ScheduleSlot]] = []
        found: list[SlotConflict] = []

        for slot in ordered:
            while active and active[0][0] <= slot.start_time:
                heapq.heappop(active)
            for _, _, running in active:
                found.append(SlotConflict.between(running, slot))
            heapq.heappush(active, (slot.end_time, slot.id, slot))

        return found
