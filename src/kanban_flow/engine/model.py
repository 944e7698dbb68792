"""Record types shared by the engine, the store and the API.

Every record is a plain dataclass that serializes to a YAML/JSON friendly
dict.  The engine never mutates records it is handed; it works on snapshots
and returns new values.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Optional

from ..constants import ACTION_TYPES
from ..utils import _generate_id, _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskPriority(str, Enum):
    """Priority shown on a task card."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class Column:
    """A board column.  The column with the highest position is terminal."""

    board_id: str
    title: str
    position: int = 0
    id: str = field(default_factory=lambda: _generate_id("col"))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Column":
        return cls(
            id=str(data.get("id") or _generate_id("col")),
            board_id=str(data.get("board_id", "")),
            title=str(data.get("title", "")),
            position=int(data.get("position", 0) or 0),
        )


@dataclass
class Task:
    """A card on the board.

    ``position`` is a floating-point ordering key.  It is only meaningful
    relative to the other tasks of the same column.
    """

    board_id: str
    column_id: str
    title: str
    position: float = 0.0
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[str] = None
    assignee_id: Optional[str] = None
    id: str = field(default_factory=lambda: _generate_id("task"))
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    @classmethod
    def validate_dict(cls, data: dict[str, Any]) -> list[str]:
        """Check the constraints that matter at the API and file boundary.

        Returns a list of error strings (empty = valid).
        """
        errors: list[str] = []
        if not isinstance(data, dict):
            return ["Expected a dict"]
        if not data.get("title"):
            errors.append("'title' is required and must be non-empty")
        for key in ("board_id", "column_id"):
            if not data.get(key):
                errors.append(f"'{key}' is required")
        priority = data.get("priority")
        if priority is not None:
            valid = {e.value for e in TaskPriority}
            if priority not in valid:
                errors.append(f"'priority' must be one of {sorted(valid)}, got '{priority}'")
        position = data.get("position")
        if position is not None and (isinstance(position, bool) or not isinstance(position, (int, float))):
            errors.append("'position' must be a number")
        elif position is not None and not math.isfinite(position):
            errors.append("'position' must be finite")
        return errors

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, falling back to Medium priority."""
        raw_priority = data.get("priority")
        try:
            priority = TaskPriority(str(raw_priority)) if raw_priority is not None else TaskPriority.MEDIUM
        except ValueError:
            priority = TaskPriority.MEDIUM
        return cls(
            id=str(data.get("id") or _generate_id("task")),
            board_id=str(data.get("board_id", "")),
            column_id=str(data.get("column_id", "")),
            title=str(data.get("title", "")),
            position=float(data.get("position", 0.0) or 0.0),
            description=data.get("description"),
            priority=priority,
            due_date=data.get("due_date"),
            assignee_id=data.get("assignee_id"),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )

    def touch(self) -> None:
        self.updated_at = _now_iso()

    def moved(self, column_id: str, position: float) -> "Task":
        """Return a copy placed at *column_id* / *position*."""
        return replace(self, column_id=column_id, position=position)


@dataclass
class TaskDependency:
    """Directed edge: ``dependent_task_id`` requires ``dependency_task_id``."""

    dependent_task_id: str
    dependency_task_id: str
    id: str = field(default_factory=lambda: _generate_id("dep"))
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskDependency":
        return cls(
            id=str(data.get("id") or _generate_id("dep")),
            dependent_task_id=str(data["dependent_task_id"]),
            dependency_task_id=str(data["dependency_task_id"]),
            created_at=str(data.get("created_at") or _now_iso()),
        )


@dataclass
class ActivityEntry:
    """One line of the board activity feed."""

    board_id: str
    action_type: str
    action_description: str
    task_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: _generate_id("act"))
    created_at: str = field(default_factory=_now_iso)

    def __post_init__(self) -> None:
        if self.action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown action_type '{self.action_type}'")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityEntry":
        return cls(
            id=str(data.get("id") or _generate_id("act")),
            board_id=str(data.get("board_id", "")),
            action_type=str(data.get("action_type", "update")),
            action_description=str(data.get("action_description", "")),
            task_id=data.get("task_id"),
            metadata=dict(data.get("metadata") or {}),
            created_at=str(data.get("created_at") or _now_iso()),
        )


# ---------------------------------------------------------------------------
# Snapshot helpers
# ---------------------------------------------------------------------------

def index_by_id(records: Iterable[Any]) -> dict[str, Any]:
    return {r.id: r for r in records}


def tasks_in_column(tasks: Iterable[Task], column_id: str) -> list[Task]:
    """Tasks of *column_id* sorted by ordering key (id breaks ties)."""
    return sorted(
        (t for t in tasks if t.column_id == column_id),
        key=lambda t: (t.position, t.id),
    )
