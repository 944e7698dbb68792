"""File-based board store with inter-process locking.

Stores columns, tasks and dependency edges for every board in a single YAML
file (``board.yaml``) inside the project's ``.kanban_flow/`` directory.  All
reads and writes go through :meth:`BoardStore.transaction`, which holds an
exclusive file lock for its whole duration.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from filelock import FileLock

from ..constants import BOARD_FILE, BOARD_LOCK_FILE, LOCK_TIMEOUT, STORE_VERSION
from ..errors import BoardStoreError
from ..io_utils import _load_data_with_error, _save_data
from ..engine.model import Column, Task, TaskDependency, tasks_in_column


@dataclass
class BoardSnapshot:
    """Everything the engine needs to decide about one board."""

    board_id: str
    columns: list[Column] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    edges: list[TaskDependency] = field(default_factory=list)


# ---------------------------------------------------------------------------
# BoardStore
# ---------------------------------------------------------------------------

class BoardStore:
    """Locked, file-backed store for board records.

    Parameters
    ----------
    state_dir:
        Path to the ``.kanban_flow/`` directory for the project.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / BOARD_FILE
        self._lock = FileLock(str(state_dir / BOARD_LOCK_FILE), timeout=LOCK_TIMEOUT)

    @property
    def path(self) -> Path:
        return self._store_path

    # -- internal helpers ---------------------------------------------------

    def _load(self) -> "_BoardTx":
        data, err = _load_data_with_error(self._store_path, {})
        if err:
            # Never overwrite a file we could not parse.
            raise BoardStoreError(err)
        for raw in data.get("tasks") or []:
            problems = Task.validate_dict(raw)
            if problems:
                raise BoardStoreError(f"{self._store_path.name}: invalid task: {'; '.join(problems)}")
        try:
            return _BoardTx(
                columns=[Column.from_dict(d) for d in data.get("columns") or []],
                tasks=[Task.from_dict(d) for d in data.get("tasks") or []],
                edges=[TaskDependency.from_dict(d) for d in data.get("dependencies") or []],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BoardStoreError(f"{self._store_path.name}: malformed record: {exc}") from exc

    def _save(self, tx: "_BoardTx") -> None:
        _save_data(
            self._store_path,
            {
                "version": STORE_VERSION,
                "columns": [c.to_dict() for c in tx.columns],
                "tasks": [t.to_dict() for t in tx.tasks],
                "dependencies": [e.to_dict() for e in tx.edges],
            },
        )

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["_BoardTx"]:
        """Acquire the lock, load the board file, yield, and save if dirty.

        Usage::

            with store.transaction() as tx:
                task = tx.get_task("task-abc123")
                tx.update_task(task.id, {"title": "Renamed"})
                # saved on exit; nothing is saved if the block raises
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            tx = self._load()
            yield tx
            if tx.dirty:
                self._save(tx)
            # Callbacks run under the lock, in commit order.
            for callback in tx.on_commit_callbacks:
                callback()

    def read_snapshot(self, board_id: str) -> BoardSnapshot:
        """Return a snapshot of one board (no lock held after return)."""
        with self.transaction() as tx:
            return tx.snapshot(board_id)


class _BoardTx:
    """In-memory view of the board file for one transaction."""

    def __init__(
        self,
        columns: list[Column],
        tasks: list[Task],
        edges: list[TaskDependency],
    ) -> None:
        self.columns = columns
        self.tasks = tasks
        self.edges = edges
        self.dirty = False
        self.on_commit_callbacks: list[Callable[[], None]] = []

    # -- lookups ------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_column(self, column_id: str) -> Optional[Column]:
        return next((c for c in self.columns if c.id == column_id), None)

    def get_edge(self, edge_id: str) -> Optional[TaskDependency]:
        return next((e for e in self.edges if e.id == edge_id), None)

    def find_edge(self, dependent_task_id: str, dependency_task_id: str) -> Optional[TaskDependency]:
        return next(
            (
                e for e in self.edges
                if e.dependent_task_id == dependent_task_id
                and e.dependency_task_id == dependency_task_id
            ),
            None,
        )

    def columns_for_board(self, board_id: str) -> list[Column]:
        return sorted((c for c in self.columns if c.board_id == board_id), key=lambda c: (c.position, c.id))

    def tasks_for_board(self, board_id: str) -> list[Task]:
        return [t for t in self.tasks if t.board_id == board_id]

    def tasks_for_column(self, column_id: str) -> list[Task]:
        return tasks_in_column(self.tasks, column_id)

    def edges_for_board(self, board_id: str) -> list[TaskDependency]:
        # Edges belong to the board of their dependent task.
        ids = {t.id for t in self.tasks_for_board(board_id)}
        return [e for e in self.edges if e.dependent_task_id in ids]

    def snapshot(self, board_id: str) -> BoardSnapshot:
        return BoardSnapshot(
            board_id=board_id,
            columns=self.columns_for_board(board_id),
            tasks=self.tasks_for_board(board_id),
            edges=self.edges_for_board(board_id),
        )

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run *callback* after a successful save, before the lock is released."""
        self.on_commit_callbacks.append(callback)

    # -- mutations ----------------------------------------------------------

    def add_column(self, column: Column) -> Column:
        if self.get_column(column.id) is not None:
            raise ValueError(f"Column {column.id} already exists")
        self.columns.append(column)
        self.dirty = True
        return column

    def add_task(self, task: Task) -> Task:
        if self.get_task(task.id) is not None:
            raise ValueError(f"Task {task.id} already exists")
        _check_task(task)
        self.tasks.append(task)
        self.dirty = True
        return task

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None
        for key, value in changes.items():
            if key == "id" or not hasattr(task, key):
                continue
            setattr(task, key, value)
        _check_task(task)
        task.touch()
        self.dirty = True
        return task

    def remove_task(self, task_id: str) -> bool:
        """Delete a task and every edge that references it."""
        task = self.get_task(task_id)
        if task is None:
            return False
        self.tasks.remove(task)
        self.edges = [
            e for e in self.edges
            if e.dependent_task_id != task_id and e.dependency_task_id != task_id
        ]
        self.dirty = True
        return True

    def add_edge(self, edge: TaskDependency) -> TaskDependency:
        self.edges.append(edge)
        self.dirty = True
        return edge

    def remove_edge(self, edge_id: str) -> Optional[TaskDependency]:
        edge = self.get_edge(edge_id)
        if edge is None:
            return None
        self.edges.remove(edge)
        self.dirty = True
        return edge


def _check_task(task: Task) -> None:
    problems = Task.validate_dict(task.to_dict())
    if problems:
        raise ValueError(f"Invalid task {task.id}: {'; '.join(problems)}")
