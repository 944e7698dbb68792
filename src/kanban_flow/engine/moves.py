"""Drag-and-drop move planning.

:class:`MoveCoordinator` turns a drop event plus a board snapshot into a
:class:`MoveOutcome`.  It never writes anything; the caller persists the
mutation (optionally applying it locally first with :func:`apply_mutation`
and rolling back with :func:`revert_mutation` if the write fails).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from loguru import logger

from ..constants import ACTION_MOVE
from ..errors import ColumnNotFound, StaleSnapshotError, TaskNotFound
from .guard import DependencyGuard, resolve_terminal_column
from .model import ActivityEntry, Column, Task, TaskDependency, tasks_in_column
from .positions import PositionKeyAllocator


class MoveStatus(str, Enum):
    NO_CHANGE = "no_change"
    MOVED = "moved"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class MoveRequest:
    task_id: str
    source_column_id: str
    destination_column_id: str
    destination_index: int
    # Index the card was dragged from; derived from the snapshot when omitted.
    source_index: Optional[int] = None


@dataclass(frozen=True)
class MoveMutation:
    task_id: str
    new_column_id: str
    new_position: float
    previous_column_id: str
    previous_position: float

    @property
    def column_changed(self) -> bool:
        return self.new_column_id != self.previous_column_id


@dataclass
class MoveOutcome:
    status: MoveStatus
    mutation: Optional[MoveMutation] = None
    activity: Optional[ActivityEntry] = None
    blocking_titles: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.status != MoveStatus.BLOCKED


class MoveCoordinator:
    """Plan one move against a snapshot of tasks, edges and columns."""

    def __init__(
        self,
        guard: Optional[DependencyGuard] = None,
        allocator: Optional[PositionKeyAllocator] = None,
    ) -> None:
        self.guard = guard or DependencyGuard()
        self.allocator = allocator or PositionKeyAllocator()

    def plan_move(
        self,
        request: MoveRequest,
        tasks: Sequence[Task],
        edges: Iterable[TaskDependency],
        columns: Sequence[Column],
    ) -> MoveOutcome:
        same_column = request.destination_column_id == request.source_column_id
        if (
            same_column
            and request.source_index is not None
            and request.destination_index == request.source_index
        ):
            return MoveOutcome(MoveStatus.NO_CHANGE, message="Task was dropped where it started")

        task = next((t for t in tasks if t.id == request.task_id), None)
        if task is None:
            raise TaskNotFound(request.task_id)
        if task.column_id != request.source_column_id:
            raise StaleSnapshotError(task.id, request.source_column_id, task.column_id)

        source_tasks = tasks_in_column(tasks, task.column_id)
        if request.source_index is None and same_column:
            current_index = next(i for i, t in enumerate(source_tasks) if t.id == task.id)
            if current_index == request.destination_index:
                return MoveOutcome(MoveStatus.NO_CHANGE, message="Task was dropped where it started")

        columns_by_id = {c.id: c for c in columns}
        destination = columns_by_id.get(request.destination_column_id)
        if destination is None:
            raise ColumnNotFound(request.destination_column_id)
        source = columns_by_id.get(request.source_column_id)
        if source is None:
            raise ColumnNotFound(request.source_column_id)

        terminal = resolve_terminal_column(columns)
        if destination.id == terminal.id and not same_column:
            decision = self.guard.can_enter_terminal_column(
                task.id, destination.id, columns, tasks, edges
            )
            if not decision.allowed:
                listed = ", ".join(decision.blocking_titles)
                return MoveOutcome(
                    MoveStatus.BLOCKED,
                    blocking_titles=list(decision.blocking_titles),
                    message=(
                        f'Cannot move "{task.title}" to {terminal.title}. '
                        f"The following dependencies must be in {terminal.title} first: {listed}"
                    ),
                )

        siblings = [t for t in tasks_in_column(tasks, destination.id) if t.id != task.id]
        new_position = self.allocator.key_for_insertion(siblings, request.destination_index)
        mutation = MoveMutation(
            task_id=task.id,
            new_column_id=destination.id,
            new_position=new_position,
            previous_column_id=task.column_id,
            previous_position=task.position,
        )
        logger.debug(
            "Planned move of {} to {} at index {} (key {})",
            task.id, destination.id, request.destination_index, new_position,
        )

        activity = None
        if mutation.column_changed:
            activity = ActivityEntry(
                board_id=task.board_id,
                action_type=ACTION_MOVE,
                action_description=f'Moved task "{task.title}" from {source.title} to {destination.title}',
                task_id=task.id,
                metadata={"from_column": source.title, "to_column": destination.title},
            )
        return MoveOutcome(
            MoveStatus.MOVED,
            mutation=mutation,
            activity=activity,
            message=f'Moved "{task.title}" to {destination.title}',
        )


def apply_mutation(tasks: Iterable[Task], mutation: MoveMutation) -> list[Task]:
    """Return a copy of *tasks* with *mutation* applied."""
    return [
        t.moved(mutation.new_column_id, mutation.new_position) if t.id == mutation.task_id else t
        for t in tasks
    ]


def revert_mutation(tasks: Iterable[Task], mutation: MoveMutation) -> list[Task]:
    """Return a copy of *tasks* with the task put back where it was."""
    return [
        t.moved(mutation.previous_column_id, mutation.previous_position)
        if t.id == mutation.task_id
        else t
        for t in tasks
    ]
