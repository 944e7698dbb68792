"""Provide the public `kanban_flow` package exports."""

from __future__ import annotations

from .board import BoardService, BoardStore
from .engine import (
    DependencyGraph,
    DependencyGuard,
    MoveCoordinator,
    MoveRequest,
    PositionKeyAllocator,
)

__version__ = "0.1.0"

__all__ = [
    "BoardService",
    "BoardStore",
    "DependencyGraph",
    "DependencyGuard",
    "MoveCoordinator",
    "MoveRequest",
    "PositionKeyAllocator",
]
