"""File-backed board persistence, activity feed and the service that ties
them to the engine."""

from .activity import ActivityLog
from .service import BoardService, DependencyChange, DependencySyncResult
from .store import BoardSnapshot, BoardStore

__all__ = [
    "ActivityLog",
    "BoardService",
    "BoardSnapshot",
    "BoardStore",
    "DependencyChange",
    "DependencySyncResult",
]
