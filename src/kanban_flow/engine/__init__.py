"""Task dependency and ordering engine.

Pure functions over board snapshots: a dependency graph, the guard that
keeps it acyclic and gates the terminal column, fractional ordering keys,
and the coordinator that plans drag-and-drop moves.
"""

from .graph import DependencyGraph
from .guard import DependencyGuard, EdgeDecision, EdgeRejection, TerminalDecision, resolve_terminal_column
from .model import ActivityEntry, Column, Task, TaskDependency, TaskPriority
from .moves import (
    MoveCoordinator,
    MoveMutation,
    MoveOutcome,
    MoveRequest,
    MoveStatus,
    apply_mutation,
    revert_mutation,
)
from .positions import PositionKeyAllocator

__all__ = [
    "ActivityEntry",
    "Column",
    "DependencyGraph",
    "DependencyGuard",
    "EdgeDecision",
    "EdgeRejection",
    "MoveCoordinator",
    "MoveMutation",
    "MoveOutcome",
    "MoveRequest",
    "MoveStatus",
    "PositionKeyAllocator",
    "Task",
    "TaskDependency",
    "TaskPriority",
    "TerminalDecision",
    "apply_mutation",
    "resolve_terminal_column",
    "revert_mutation",
]
