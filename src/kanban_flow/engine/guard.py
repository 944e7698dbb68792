"""Policy checks for dependency edits and terminal-column moves."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from loguru import logger

from ..errors import ColumnNotFound
from .graph import DependencyGraph
from .model import Column, Task, TaskDependency, index_by_id


class EdgeRejection(str, Enum):
    SELF_DEPENDENCY = "self-dependency"
    CYCLE = "cycle"


@dataclass(frozen=True)
class EdgeDecision:
    allowed: bool
    reason: Optional[EdgeRejection] = None

    @property
    def message(self) -> str:
        if self.allowed:
            return "Dependency can be added"
        if self.reason == EdgeRejection.SELF_DEPENDENCY:
            return "Cannot add this dependency: a task cannot depend on itself"
        return "Cannot add this dependency: it would create a circular dependency"


@dataclass(frozen=True)
class TerminalDecision:
    allowed: bool
    blocking_titles: list[str] = field(default_factory=list)
    terminal_column_id: Optional[str] = None


def resolve_terminal_column(columns: Sequence[Column]) -> Column:
    """Return the column with the highest position.

    Columns sharing the highest position are ordered by id and the lowest
    wins, so the answer never depends on the order *columns* arrive in.
    """
    if not columns:
        raise ColumnNotFound(None, "Board columns are not available")
    return min(columns, key=lambda c: (-c.position, c.id))


class DependencyGuard:
    """Stateless checks over explicitly passed snapshots."""

    @staticmethod
    def can_create_edge(
        dependent: str,
        dependency: str,
        existing_edges: Iterable[TaskDependency],
    ) -> EdgeDecision:
        if dependent == dependency:
            logger.info("Rejected dependency {} -> {}: self-dependency", dependent, dependency)
            return EdgeDecision(False, EdgeRejection.SELF_DEPENDENCY)
        if DependencyGraph(existing_edges).would_create_cycle(dependent, dependency):
            logger.info("Rejected dependency {} -> {}: cycle", dependent, dependency)
            return EdgeDecision(False, EdgeRejection.CYCLE)
        return EdgeDecision(True)

    @staticmethod
    def can_enter_terminal_column(
        task_id: str,
        destination_column_id: str,
        all_columns: Sequence[Column],
        all_tasks: Iterable[Task],
        all_edges: Iterable[TaskDependency],
    ) -> TerminalDecision:
        terminal = resolve_terminal_column(all_columns)
        if destination_column_id != terminal.id:
            return TerminalDecision(True, [], terminal.id)

        blocking = DependencyGraph(all_edges).unmet_prerequisites(
            task_id, terminal.id, index_by_id(all_tasks)
        )
        if blocking:
            logger.info(
                "Task {} blocked from terminal column {} by {}", task_id, terminal.title, blocking
            )
            return TerminalDecision(False, blocking, terminal.id)
        logger.debug("Task {} may enter terminal column {}", task_id, terminal.title)
        return TerminalDecision(True, [], terminal.id)

    @staticmethod
    def selectable_prerequisites(
        task_id: Optional[str],
        all_tasks: Iterable[Task],
        all_edges: Iterable[TaskDependency],
    ) -> list[Task]:
        """Tasks that may legally be added as prerequisites of *task_id*.

        A task that does not exist yet (``task_id is None``) can depend on
        anything, since nothing can depend on it.
        """
        tasks = list(all_tasks)
        if task_id is None:
            return tasks
        graph = DependencyGraph(all_edges)
        return [t for t in tasks if not graph.would_create_cycle(task_id, t.id)]
