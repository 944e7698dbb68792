"""Board service: applies engine decisions to the board store.

This is the entry point used by the API and the CLI.  Each operation reads
a fresh snapshot inside a store transaction, asks the engine, writes the
accepted change in the same transaction, and records activity once the
write has succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger

from ..config import get_activity_config, get_positions_config, load_board_config
from ..constants import ACTION_CREATE, ACTION_DELETE, STATE_DIR_NAME
from ..errors import ColumnNotFound, DependencyNotFound, TaskNotFound
from ..engine.graph import DependencyGraph
from ..engine.guard import DependencyGuard, EdgeDecision, EdgeRejection, resolve_terminal_column
from ..engine.model import ActivityEntry, Column, Task, TaskDependency, TaskPriority, index_by_id
from ..engine.moves import MoveCoordinator, MoveOutcome, MoveRequest, MoveStatus
from ..engine.positions import PositionKeyAllocator
from .activity import ActivityLog
from .store import BoardStore, _BoardTx


@dataclass
class DependencyChange:
    decision: EdgeDecision
    edge: Optional[TaskDependency] = None
    created: bool = False


@dataclass
class DependencySyncResult:
    added: list[TaskDependency] = field(default_factory=list)
    removed: list[TaskDependency] = field(default_factory=list)
    rejected: dict[str, EdgeRejection] = field(default_factory=dict)


def _added_activity(board_id: str, dependent: Task, dependency: Task) -> ActivityEntry:
    return ActivityEntry(
        board_id=board_id,
        action_type=ACTION_CREATE,
        action_description=f'Added dependency: "{dependent.title}" depends on "{dependency.title}"',
        task_id=dependent.id,
        metadata={"dependency_task": dependency.title},
    )


def _removed_activity(board_id: str, dependent: Task, dependency: Task) -> ActivityEntry:
    return ActivityEntry(
        board_id=board_id,
        action_type=ACTION_DELETE,
        action_description=(
            f'Removed dependency: "{dependent.title}" no longer depends on "{dependency.title}"'
        ),
        task_id=dependent.id,
        metadata={"dependency_task": dependency.title},
    )


class BoardService:
    """Manage tasks, columns and dependencies of the boards in one project.

    Parameters
    ----------
    state_dir:
        Path to the ``.kanban_flow/`` directory.
    config:
        Parsed board configuration (see :mod:`kanban_flow.config`).
    """

    def __init__(self, state_dir: Path, config: Optional[dict[str, Any]] = None) -> None:
        config = config or {}
        self.store = BoardStore(state_dir)
        self.activity = ActivityLog(state_dir, enabled=get_activity_config(config)["enabled"])
        self.activity_limit: int = get_activity_config(config)["default_limit"]
        positions = get_positions_config(config)
        self.renumber_min_gap: Optional[float] = positions["renumber_min_gap"]
        self.renumber_step: float = positions["renumber_step"]
        self.guard = DependencyGuard()
        self.allocator = PositionKeyAllocator()
        self.coordinator = MoveCoordinator(self.guard, self.allocator)

    @classmethod
    def for_project(cls, project_dir: Path) -> "BoardService":
        config, err = load_board_config(project_dir)
        if err:
            logger.warning("Ignoring unreadable board config: {}", err)
        return cls(project_dir.resolve() / STATE_DIR_NAME, config)

    def _record_on_commit(self, tx: _BoardTx, entries: list[ActivityEntry]) -> None:
        # *entries* may still grow until the transaction commits.
        tx.on_commit(lambda: self._record(entries))

    def _record(self, entries: Iterable[ActivityEntry]) -> None:
        for entry in entries:
            self.activity.record(entry)

    @staticmethod
    def _require_task(tx: _BoardTx, task_id: str, board_id: Optional[str] = None) -> Task:
        """Look up *task_id*, treating a task on another board as missing."""
        task = tx.get_task(task_id)
        if task is None or (board_id is not None and task.board_id != board_id):
            raise TaskNotFound(task_id)
        return task

    # ------------------------------------------------------------------
    # Columns and tasks
    # ------------------------------------------------------------------

    def create_column(self, board_id: str, title: str) -> Column:
        """Append a column to the right of the existing ones."""
        with self.store.transaction() as tx:
            existing = tx.columns_for_board(board_id)
            position = max((c.position for c in existing), default=-1) + 1
            column = tx.add_column(Column(board_id=board_id, title=title, position=position))
        logger.info("Created column {} ({}) on board {}", column.id, title, board_id)
        return column

    def create_task(
        self,
        board_id: str,
        column_id: str,
        title: str,
        description: Optional[str] = None,
        priority: str = "Medium",
        due_date: Optional[str] = None,
        assignee_id: Optional[str] = None,
        position: Optional[float] = None,
        dependency_ids: Optional[list[str]] = None,
    ) -> Task:
        """Create a task; without *position* it goes after the column's existing tasks.

        The task and its prerequisite edges are written in one transaction.
        An unknown prerequisite raises :class:`TaskNotFound` and an invalid
        field raises :class:`ValueError`; in both cases nothing is saved.
        """
        activities: list[ActivityEntry] = []
        with self.store.transaction() as tx:
            column = tx.get_column(column_id)
            if column is None or column.board_id != board_id:
                raise ColumnNotFound(column_id)
            if position is None:
                position = float(len(tx.tasks_for_column(column_id)))
            task = tx.add_task(
                Task(
                    board_id=board_id,
                    column_id=column_id,
                    title=title,
                    description=description,
                    priority=TaskPriority(priority) if priority else TaskPriority.MEDIUM,
                    due_date=due_date,
                    assignee_id=assignee_id,
                    position=float(position),
                )
            )
            activities.append(
                ActivityEntry(
                    board_id=board_id,
                    action_type=ACTION_CREATE,
                    action_description=f'Created task "{title}"',
                    task_id=task.id,
                    metadata={"column_name": column.title},
                )
            )
            for dependency_id in dict.fromkeys(dependency_ids or []):
                change, activity = self._add_edge(tx, task.id, dependency_id)
                if change.decision.reason is not None:
                    logger.info("Skipped prerequisite {} of new task: {}", dependency_id, change.decision.reason.value)
                if activity is not None:
                    activities.append(activity)
            self._record_on_commit(tx, activities)
        logger.info("Created task {}: {}", task.id, title)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        with self.store.transaction() as tx:
            return tx.get_task(task_id)

    def delete_task(self, task_id: str, board_id: Optional[str] = None) -> bool:
        """Delete a task and every dependency edge touching it.

        Returns False if the task does not exist (or is not on *board_id*).
        """
        with self.store.transaction() as tx:
            task = tx.get_task(task_id)
            if task is None or (board_id is not None and task.board_id != board_id):
                return False
            tx.remove_task(task_id)
            self._record_on_commit(tx, [
                ActivityEntry(
                    board_id=task.board_id,
                    action_type=ACTION_DELETE,
                    action_description=f'Deleted task "{task.title}"',
                    task_id=task_id,
                )
            ])
        logger.info("Deleted task {}", task_id)
        return True

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def move_task(self, board_id: str, request: MoveRequest) -> MoveOutcome:
        """Plan and persist one drag-and-drop move.

        A blocked move writes nothing.  Structural errors propagate out of
        the transaction, so nothing is written for them either.
        """
        with self.store.transaction() as tx:
            snap = tx.snapshot(board_id)
            outcome = self.coordinator.plan_move(request, snap.tasks, snap.edges, snap.columns)
            if outcome.status != MoveStatus.MOVED or outcome.mutation is None:
                return outcome

            mutation = outcome.mutation
            tx.update_task(
                mutation.task_id,
                {"column_id": mutation.new_column_id, "position": mutation.new_position},
            )
            renumbered = self._maybe_renumber(tx, mutation.new_column_id)
            if mutation.task_id in renumbered:
                outcome.mutation = replace(mutation, new_position=renumbered[mutation.task_id])
            if outcome.activity is not None:
                self._record_on_commit(tx, [outcome.activity])

        logger.info(
            "Moved task {} from {} to {} (key {})",
            mutation.task_id,
            mutation.previous_column_id,
            mutation.new_column_id,
            outcome.mutation.new_position,
        )
        return outcome

    def _maybe_renumber(self, tx: _BoardTx, column_id: str) -> dict[str, float]:
        if self.renumber_min_gap is None:
            return {}
        column_tasks = tx.tasks_for_column(column_id)
        keys = [t.position for t in column_tasks]
        if not self.allocator.needs_renumbering(keys, self.renumber_min_gap):
            return {}
        new_keys = self.allocator.renumber(column_tasks, self.renumber_step)
        for task_id, key in new_keys.items():
            tx.update_task(task_id, {"position": key})
        logger.info("Renumbered {} tasks in column {}", len(new_keys), column_id)
        return new_keys

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(
        self,
        dependent_task_id: str,
        dependency_task_id: str,
        board_id: Optional[str] = None,
    ) -> DependencyChange:
        """Add ``dependent → dependency`` if the guard allows it.

        Adding an edge that already exists is a no-op that reports success.
        """
        with self.store.transaction() as tx:
            change, activity = self._add_edge(tx, dependent_task_id, dependency_task_id, board_id)
            if activity is not None:
                self._record_on_commit(tx, [activity])
        return change

    def _add_edge(
        self,
        tx: _BoardTx,
        dependent_task_id: str,
        dependency_task_id: str,
        board_id: Optional[str] = None,
    ) -> tuple[DependencyChange, Optional[ActivityEntry]]:
        dependent = self._require_task(tx, dependent_task_id, board_id)
        board_tasks = index_by_id(tx.tasks_for_board(dependent.board_id))
        dependency = board_tasks.get(dependency_task_id)
        if dependency is None:
            raise TaskNotFound(dependency_task_id)

        existing = tx.find_edge(dependent_task_id, dependency_task_id)
        if existing is not None:
            return DependencyChange(EdgeDecision(True), existing, created=False), None

        decision = self.guard.can_create_edge(
            dependent_task_id, dependency_task_id, tx.edges_for_board(dependent.board_id)
        )
        if not decision.allowed:
            return DependencyChange(decision), None

        edge = tx.add_edge(
            TaskDependency(dependent_task_id=dependent_task_id, dependency_task_id=dependency_task_id)
        )
        logger.info("Added dependency {}: {} -> {}", edge.id, dependent_task_id, dependency_task_id)
        return (
            DependencyChange(decision, edge, created=True),
            _added_activity(dependent.board_id, dependent, dependency),
        )

    def remove_dependency(self, edge_id: str, board_id: Optional[str] = None) -> TaskDependency:
        """Remove one edge.  An edge whose dependent is on another board counts as missing."""
        with self.store.transaction() as tx:
            edge = tx.get_edge(edge_id)
            if edge is None:
                raise DependencyNotFound(edge_id)
            dependent = tx.get_task(edge.dependent_task_id)
            if board_id is not None and (dependent is None or dependent.board_id != board_id):
                raise DependencyNotFound(edge_id)
            tx.remove_edge(edge_id)
            dependency = tx.get_task(edge.dependency_task_id)
            if dependent is not None and dependency is not None:
                self._record_on_commit(tx, [_removed_activity(dependent.board_id, dependent, dependency)])
        logger.info("Removed dependency {}", edge_id)
        return edge

    def sync_dependencies(
        self,
        task_id: str,
        dependency_ids: list[str],
        board_id: Optional[str] = None,
    ) -> DependencySyncResult:
        """Make *dependency_ids* the exact prerequisite set of *task_id*.

        Removals run first so that swapping a prerequisite never trips the
        cycle check on an edge that is about to disappear.  Rejected
        additions are reported per id; the rest of the update still applies.
        """
        result = DependencySyncResult()
        activities: list[ActivityEntry] = []
        wanted = list(dict.fromkeys(dependency_ids))
        with self.store.transaction() as tx:
            task = self._require_task(tx, task_id, board_id)
            current = [e for e in tx.edges if e.dependent_task_id == task_id]

            for edge in current:
                if edge.dependency_task_id in wanted:
                    continue
                tx.remove_edge(edge.id)
                result.removed.append(edge)
                dependency = tx.get_task(edge.dependency_task_id)
                if dependency is not None:
                    activities.append(_removed_activity(task.board_id, task, dependency))

            current_ids = {e.dependency_task_id for e in current}
            for dependency_id in wanted:
                if dependency_id in current_ids:
                    continue
                change, activity = self._add_edge(tx, task_id, dependency_id)
                if change.created and change.edge is not None:
                    result.added.append(change.edge)
                elif change.decision.reason is not None:
                    result.rejected[dependency_id] = change.decision.reason
                if activity is not None:
                    activities.append(activity)
            self._record_on_commit(tx, activities)

        return result

    def dependencies(self, task_id: str, board_id: Optional[str] = None) -> dict[str, list[TaskDependency]]:
        """Direct edges in both directions for *task_id*."""
        with self.store.transaction() as tx:
            self._require_task(tx, task_id, board_id)
            return {
                "dependencies": [e for e in tx.edges if e.dependent_task_id == task_id],
                "dependents": [e for e in tx.edges if e.dependency_task_id == task_id],
            }

    def selectable_prerequisites(self, task_id: str, board_id: Optional[str] = None) -> list[Task]:
        with self.store.transaction() as tx:
            task = self._require_task(tx, task_id, board_id)
            snap = tx.snapshot(task.board_id)
        return self.guard.selectable_prerequisites(task_id, snap.tasks, snap.edges)

    def blockers(self, task_id: str, board_id: Optional[str] = None) -> list[str]:
        """Titles of prerequisites that keep *task_id* out of the terminal column."""
        with self.store.transaction() as tx:
            task = self._require_task(tx, task_id, board_id)
            snap = tx.snapshot(task.board_id)
        terminal = resolve_terminal_column(snap.columns)
        return DependencyGraph(snap.edges).unmet_prerequisites(
            task_id, terminal.id, index_by_id(snap.tasks)
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def board_view(self, board_id: str) -> dict[str, Any]:
        """Columns left to right, each with its tasks in key order."""
        with self.store.transaction() as tx:
            columns = tx.columns_for_board(board_id)
            view = [
                {"column": c.to_dict(), "tasks": [t.to_dict() for t in tx.tasks_for_column(c.id)]}
                for c in columns
            ]
        terminal_id = resolve_terminal_column(columns).id if columns else None
        return {"board_id": board_id, "terminal_column_id": terminal_id, "columns": view}

    def recent_activity(self, board_id: str, limit: Optional[int] = None) -> list[ActivityEntry]:
        return self.activity.recent(board_id, limit or self.activity_limit)
