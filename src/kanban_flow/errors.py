"""Structural errors raised by the board engine.

Expected outcomes (a rejected dependency, a blocked move) are returned as
values.  Everything in this module signals a snapshot that does not contain
what the caller claimed it contains, and aborts the operation.
"""

from __future__ import annotations


class BoardEngineError(Exception):
    """Base class for contract violations detected by the engine."""


class TaskNotFound(BoardEngineError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ColumnNotFound(BoardEngineError):
    def __init__(self, column_id: str | None, detail: str | None = None) -> None:
        super().__init__(detail or f"Column {column_id} not found")
        self.column_id = column_id


class DependencyNotFound(BoardEngineError):
    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Dependency {edge_id} not found")
        self.edge_id = edge_id


class StaleSnapshotError(BoardEngineError):
    """The caller's view of a task disagrees with the snapshot it passed in."""

    def __init__(self, task_id: str, expected_column_id: str, actual_column_id: str) -> None:
        super().__init__(
            f"Task {task_id} is in column {actual_column_id}, not {expected_column_id}"
        )
        self.task_id = task_id
        self.expected_column_id = expected_column_id
        self.actual_column_id = actual_column_id


class BoardStoreError(RuntimeError):
    """The on-disk board file could not be read."""
