"""Tests for fractional ordering keys (engine/positions.py)."""

from __future__ import annotations

import pytest

from kanban_flow.engine.model import Task
from kanban_flow.engine.positions import PositionKeyAllocator


def _tasks(*keys: float) -> list[Task]:
    return [
        Task(id=f"t{i}", board_id="b1", column_id="c1", title=f"T{i}", position=k)
        for i, k in enumerate(keys)
    ]


allocator = PositionKeyAllocator()


class TestKeyForInsertion:
    def test_empty_column_at_start(self) -> None:
        assert allocator.key_for_insertion([], 0) == 0.0

    def test_empty_column_past_end_uses_index(self) -> None:
        assert allocator.key_for_insertion([], 3) == 3.0

    def test_start_halves_first_key(self) -> None:
        key = allocator.key_for_insertion(_tasks(4.0, 5.0), 0)
        assert key == 2.0
        assert key < 4.0

    @pytest.mark.parametrize("first", [0.0, -2.0])
    def test_start_stays_below_non_positive_first_key(self, first: float) -> None:
        key = allocator.key_for_insertion(_tasks(first, 5.0), 0)
        assert key < first

    def test_end_adds_one(self) -> None:
        key = allocator.key_for_insertion(_tasks(1.0, 2.5), 2)
        assert key == 3.5

    def test_index_beyond_end_appends(self) -> None:
        assert allocator.key_for_insertion(_tasks(1.0), 10) == 2.0

    def test_middle_takes_mean(self) -> None:
        key = allocator.key_for_insertion(_tasks(1.0, 2.0, 3.0), 1)
        assert key == 1.5
        assert 1.0 < key < 2.0

    def test_negative_index_rejected(self) -> None:
        with pytest.raises(ValueError):
            allocator.key_for_insertion(_tasks(1.0), -1)

    def test_repeated_midpoints_exhaust_precision(self) -> None:
        low, high = _tasks(1.0, 2.0)
        for _ in range(200):
            key = allocator.key_for_insertion([low, high], 1)
            if key in (low.position, high.position):
                break
            high = Task(id="hi", board_id="b1", column_id="c1", title="hi", position=key)
        else:
            pytest.fail("midpoint insertion never collided")
        assert allocator.needs_renumbering([low.position, key], 1e-9)


class TestRenumbering:
    def test_needs_renumbering(self) -> None:
        assert allocator.needs_renumbering([1.0, 1.0 + 1e-12, 3.0], 1e-6)
        assert not allocator.needs_renumbering([3.0, 1.0, 2.0], 0.5)
        assert not allocator.needs_renumbering([], 0.5)

    def test_renumber_preserves_order(self) -> None:
        tasks = _tasks(0.5, 0.25, 0.375)
        keys = allocator.renumber(tasks, step=10.0)
        assert keys == {"t1": 10.0, "t2": 20.0, "t0": 30.0}
