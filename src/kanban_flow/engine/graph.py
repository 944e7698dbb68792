"""Read-only adjacency view over a board's dependency edges.

The graph is rebuilt from the edge list on every engine call; it holds no
state beyond what it was constructed from.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Mapping

from .model import Task, TaskDependency


class DependencyGraph:
    """Directed graph where an edge ``a → b`` means *a depends on b*."""

    def __init__(self, edges: Iterable[TaskDependency]) -> None:
        self._requires: dict[str, set[str]] = defaultdict(set)
        self._required_by: dict[str, set[str]] = defaultdict(set)
        # Insertion order of targets, so traversal order follows the edge list.
        self._ordered: dict[str, list[str]] = defaultdict(list)
        for edge in edges:
            src, dst = edge.dependent_task_id, edge.dependency_task_id
            if dst not in self._requires[src]:
                self._requires[src].add(dst)
                self._ordered[src].append(dst)
            self._required_by[dst].add(src)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._requires or task_id in self._required_by

    def has_edge(self, dependent: str, dependency: str) -> bool:
        return dependency in self._requires.get(dependent, ())

    def dependencies_of(self, task_id: str) -> list[str]:
        """Direct prerequisites of *task_id*, in edge order."""
        return list(self._ordered.get(task_id, ()))

    def dependents_of(self, task_id: str) -> list[str]:
        """Tasks that directly depend on *task_id*."""
        return sorted(self._required_by.get(task_id, ()))

    def reachable_from(self, task_id: str) -> list[str]:
        """Every transitive prerequisite of *task_id* in breadth-first order."""
        return list(self._walk(task_id))

    def _walk(self, start: str):
        visited: set[str] = {start}
        queue: deque[str] = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in self._ordered.get(current, ()):
                if nxt in visited:
                    continue
                visited.add(nxt)
                queue.append(nxt)
                yield nxt

    def would_create_cycle(self, dependent: str, dependency: str) -> bool:
        """Return True if adding ``dependent → dependency`` closes a cycle.

        That happens exactly when *dependency* already reaches *dependent*,
        directly or transitively.  A self-edge is the trivial case.
        """
        if dependent == dependency:
            return True
        return any(node == dependent for node in self._walk(dependency))

    def unmet_prerequisites(
        self,
        task_id: str,
        terminal_column_id: str,
        tasks_by_id: Mapping[str, Task],
    ) -> list[str]:
        """Titles of transitive prerequisites outside the terminal column.

        Titles come back in breadth-first order.  Prerequisites that are
        already terminal are still traversed, so a blocker behind a finished
        task is reported.  Edges to tasks missing from *tasks_by_id* are
        followed but contribute no title.
        """
        titles: list[str] = []
        for node in self._walk(task_id):
            task = tasks_by_id.get(node)
            if task is not None and task.column_id != terminal_column_id:
                titles.append(task.title)
        return titles
