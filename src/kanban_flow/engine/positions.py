"""Fractional ordering keys for drag-and-drop insertion.

Keys are floats.  Inserting between two neighbours takes their midpoint, so
repeated insertions into the same gap eventually run out of precision.
``needs_renumbering`` / ``renumber`` let a caller respace a column when
that happens; nothing here does it implicitly.
"""

from __future__ import annotations

from typing import Sequence

from ..constants import DEFAULT_RENUMBER_STEP
from .model import Task


class PositionKeyAllocator:
    @staticmethod
    def key_for_insertion(destination_tasks: Sequence[Task], target_index: int) -> float:
        """Key that places a task at *target_index* among *destination_tasks*.

        *destination_tasks* must be sorted by key and must not contain the
        task being placed.
        """
        if target_index < 0:
            raise ValueError(f"target_index must be >= 0, got {target_index}")
        count = len(destination_tasks)

        if target_index == 0:
            if not count:
                return 0.0
            first = destination_tasks[0].position
            # Halving only moves a key downwards while it is positive.
            return first / 2 if first > 0 else first - 1

        if target_index >= count:
            if not count:
                return float(target_index)
            return destination_tasks[-1].position + 1

        before = destination_tasks[target_index - 1].position
        after = destination_tasks[target_index].position
        return (before + after) / 2

    @staticmethod
    def needs_renumbering(keys: Sequence[float], min_gap: float) -> bool:
        """True when two adjacent sorted keys are closer than *min_gap*."""
        ordered = sorted(keys)
        return any(b - a < min_gap for a, b in zip(ordered, ordered[1:]))

    @staticmethod
    def renumber(tasks: Sequence[Task], step: float = DEFAULT_RENUMBER_STEP) -> dict[str, float]:
        """Evenly spaced keys ``step, 2*step, ...`` in the current order."""
        ordered = sorted(tasks, key=lambda t: (t.position, t.id))
        return {t.id: step * (i + 1) for i, t in enumerate(ordered)}
