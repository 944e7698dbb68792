"""Tests for the board service (board/service.py)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from kanban_flow.board.service import BoardService
from kanban_flow.constants import ACTION_CREATE, ACTION_DELETE, ACTION_MOVE
from kanban_flow.engine.guard import EdgeRejection
from kanban_flow.engine.moves import MoveRequest, MoveStatus
from kanban_flow.errors import ColumnNotFound, DependencyNotFound, StaleSnapshotError, TaskNotFound


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / ".kanban_flow"


@pytest.fixture
def service(state_dir: Path) -> BoardService:
    return BoardService(state_dir)


@pytest.fixture
def board(service: BoardService) -> dict[str, str]:
    """Todo / Doing / Done with three tasks; "Ship" depends on "Test"."""
    todo = service.create_column("b1", "Todo")
    doing = service.create_column("b1", "Doing")
    done = service.create_column("b1", "Done")
    write = service.create_task("b1", todo.id, "Write")
    test = service.create_task("b1", todo.id, "Test")
    ship = service.create_task("b1", doing.id, "Ship", dependency_ids=[test.id])
    return {
        "todo": todo.id,
        "doing": doing.id,
        "done": done.id,
        "write": write.id,
        "test": test.id,
        "ship": ship.id,
    }


class TestColumnsAndTasks:
    def test_columns_append_left_to_right(self, service: BoardService, board) -> None:
        view = service.board_view("b1")
        assert [c["column"]["title"] for c in view["columns"]] == ["Todo", "Doing", "Done"]
        assert [c["column"]["position"] for c in view["columns"]] == [0, 1, 2]
        assert view["terminal_column_id"] == board["done"]

    def test_tasks_default_to_end_of_column(self, service: BoardService, board) -> None:
        view = service.board_view("b1")
        todo_tasks = view["columns"][0]["tasks"]
        assert [t["title"] for t in todo_tasks] == ["Write", "Test"]
        assert [t["position"] for t in todo_tasks] == [0.0, 1.0]

    def test_create_task_in_unknown_column(self, service: BoardService, board) -> None:
        with pytest.raises(ColumnNotFound):
            service.create_task("b1", "col-missing", "Nope")

    def test_create_task_in_column_of_other_board(self, service: BoardService, board) -> None:
        with pytest.raises(ColumnNotFound):
            service.create_task("b2", board["todo"], "Nope")

    def test_empty_board_view(self, service: BoardService) -> None:
        view = service.board_view("empty")
        assert view == {"board_id": "empty", "terminal_column_id": None, "columns": []}

    def test_unknown_prerequisite_leaves_no_task(self, service: BoardService, board) -> None:
        before = service.store.path.read_text(encoding="utf-8")
        activity_before = len(service.recent_activity("b1", 100))

        with pytest.raises(TaskNotFound):
            service.create_task("b1", board["todo"], "Orphan", dependency_ids=[board["write"], "task-missing"])

        titles = [t["title"] for t in service.board_view("b1")["columns"][0]["tasks"]]
        assert "Orphan" not in titles
        assert service.store.path.read_text(encoding="utf-8") == before
        assert len(service.recent_activity("b1", 100)) == activity_before

    def test_prerequisites_saved_with_new_task(self, service: BoardService, board) -> None:
        task = service.create_task("b1", board["todo"], "Docs", dependency_ids=[board["write"], board["write"]])
        deps = service.dependencies(task.id)["dependencies"]
        assert [e.dependency_task_id for e in deps] == [board["write"]]
        latest = service.recent_activity("b1", 2)
        assert [e.action_description for e in latest] == [
            'Added dependency: "Docs" depends on "Write"',
            'Created task "Docs"',
        ]

    def test_empty_title_rejected_before_write(self, service: BoardService, board) -> None:
        with pytest.raises(ValueError, match="title"):
            service.create_task("b1", board["todo"], "")
        # The board file is still readable.
        assert len(service.board_view("b1")["columns"]) == 3

    @pytest.mark.parametrize("position", [float("nan"), float("inf")])
    def test_non_finite_position_rejected(self, service: BoardService, board, position: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            service.create_task("b1", board["todo"], "Broken", position=position)
        assert [t["title"] for t in service.board_view("b1")["columns"][0]["tasks"]] == ["Write", "Test"]

    def test_delete_cascades_dependencies(self, service: BoardService, board) -> None:
        assert service.delete_task(board["test"])
        assert service.dependencies(board["ship"])["dependencies"] == []
        assert not service.delete_task(board["test"])
        latest = service.recent_activity("b1", 1)[0]
        assert latest.action_type == ACTION_DELETE
        assert latest.action_description == 'Deleted task "Test"'


class TestMoves:
    def test_move_persists_and_records_activity(self, service: BoardService, board) -> None:
        request = MoveRequest(board["write"], board["todo"], board["doing"], 0)
        outcome = service.move_task("b1", request)

        assert outcome.status == MoveStatus.MOVED
        task = service.get_task(board["write"])
        assert task.column_id == board["doing"]
        assert task.position == outcome.mutation.new_position

        latest = service.recent_activity("b1", 1)[0]
        assert latest.action_type == ACTION_MOVE
        assert latest.metadata == {"from_column": "Todo", "to_column": "Doing"}

    def test_blocked_move_writes_nothing(self, service: BoardService, board) -> None:
        before = service.store.path.read_text(encoding="utf-8")
        activity_before = len(service.recent_activity("b1", 100))

        outcome = service.move_task("b1", MoveRequest(board["ship"], board["doing"], board["done"], 0))

        assert outcome.status == MoveStatus.BLOCKED
        assert outcome.blocking_titles == ["Test"]
        assert service.store.path.read_text(encoding="utf-8") == before
        assert len(service.recent_activity("b1", 100)) == activity_before

    def test_unblocked_after_prerequisite_done(self, service: BoardService, board) -> None:
        service.move_task("b1", MoveRequest(board["test"], board["todo"], board["done"], 0))
        outcome = service.move_task("b1", MoveRequest(board["ship"], board["doing"], board["done"], 1))
        assert outcome.status == MoveStatus.MOVED
        assert service.blockers(board["ship"]) == []

    def test_no_change_writes_nothing(self, service: BoardService, board) -> None:
        before = service.store.path.read_text(encoding="utf-8")
        outcome = service.move_task("b1", MoveRequest(board["write"], board["todo"], board["todo"], 0))
        assert outcome.status == MoveStatus.NO_CHANGE
        assert service.store.path.read_text(encoding="utf-8") == before

    def test_stale_source_column(self, service: BoardService, board) -> None:
        with pytest.raises(StaleSnapshotError):
            service.move_task("b1", MoveRequest(board["write"], board["doing"], board["done"], 0))

    def test_renumbering_when_keys_crowd(self, state_dir: Path) -> None:
        service = BoardService(state_dir, {"positions": {"renumber_min_gap": 0.75, "renumber_step": 1.0}})
        todo = service.create_column("b1", "Todo")
        doing = service.create_column("b1", "Doing")
        a = service.create_task("b1", todo.id, "A")
        b = service.create_task("b1", todo.id, "B")
        c = service.create_task("b1", doing.id, "C")

        outcome = service.move_task("b1", MoveRequest(c.id, doing.id, todo.id, 1))

        assert outcome.mutation.new_position == 2.0
        keys = {t["title"]: t["position"] for t in service.board_view("b1")["columns"][0]["tasks"]}
        assert keys == {"A": 1.0, "C": 2.0, "B": 3.0}
        assert service.get_task(a.id).position < service.get_task(b.id).position

    def test_no_renumbering_by_default(self, service: BoardService, board) -> None:
        outcome = service.move_task("b1", MoveRequest(board["ship"], board["doing"], board["todo"], 1))
        assert outcome.mutation.new_position == 0.5
        assert service.get_task(board["write"]).position == 0.0


class TestDependencies:
    def test_add_dependency_records_activity(self, service: BoardService, board) -> None:
        change = service.add_dependency(board["ship"], board["write"])
        assert change.decision.allowed
        assert change.created
        latest = service.recent_activity("b1", 1)[0]
        assert latest.action_type == ACTION_CREATE
        assert latest.action_description == 'Added dependency: "Ship" depends on "Write"'

    def test_duplicate_edge_is_idempotent(self, service: BoardService, board) -> None:
        change = service.add_dependency(board["ship"], board["test"])
        assert change.decision.allowed
        assert not change.created
        assert len(service.dependencies(board["ship"])["dependencies"]) == 1

    def test_self_dependency_rejected(self, service: BoardService, board) -> None:
        change = service.add_dependency(board["write"], board["write"])
        assert not change.decision.allowed
        assert change.decision.reason == EdgeRejection.SELF_DEPENDENCY
        assert change.edge is None

    def test_cycle_rejected(self, service: BoardService, board) -> None:
        change = service.add_dependency(board["test"], board["ship"])
        assert change.decision.reason == EdgeRejection.CYCLE
        assert service.dependencies(board["test"])["dependencies"] == []

    def test_unknown_tasks(self, service: BoardService, board) -> None:
        with pytest.raises(TaskNotFound):
            service.add_dependency("task-missing", board["write"])
        with pytest.raises(TaskNotFound):
            service.add_dependency(board["write"], "task-missing")

    def test_remove_dependency(self, service: BoardService, board) -> None:
        edge = service.dependencies(board["ship"])["dependencies"][0]
        removed = service.remove_dependency(edge.id)
        assert removed.id == edge.id
        assert service.blockers(board["ship"]) == []
        latest = service.recent_activity("b1", 1)[0]
        assert latest.action_description == 'Removed dependency: "Ship" no longer depends on "Test"'
        with pytest.raises(DependencyNotFound):
            service.remove_dependency(edge.id)

    def test_sync_dependencies(self, service: BoardService, board) -> None:
        result = service.sync_dependencies(board["ship"], [board["write"], board["ship"]])

        assert [e.dependency_task_id for e in result.added] == [board["write"]]
        assert [e.dependency_task_id for e in result.removed] == [board["test"]]
        assert result.rejected == {board["ship"]: EdgeRejection.SELF_DEPENDENCY}
        deps = service.dependencies(board["ship"])["dependencies"]
        assert [e.dependency_task_id for e in deps] == [board["write"]]

    def test_sync_swap_does_not_trip_cycle_check(self, service: BoardService, board) -> None:
        # Reverse the direction of the only edge in one update.
        service.sync_dependencies(board["ship"], [])
        result = service.sync_dependencies(board["test"], [board["ship"]])
        assert result.rejected == {}
        assert len(result.added) == 1

    def test_selectable_prerequisites(self, service: BoardService, board) -> None:
        titles = {t.title for t in service.selectable_prerequisites(board["test"])}
        assert titles == {"Write"}

    def test_blockers(self, service: BoardService, board) -> None:
        assert service.blockers(board["ship"]) == ["Test"]
        assert service.blockers(board["write"]) == []


class TestActivity:
    def test_recent_is_newest_first_and_per_board(self, service: BoardService, board) -> None:
        entries = service.recent_activity("b1")
        assert entries[0].action_description == 'Added dependency: "Ship" depends on "Test"'
        assert all(e.board_id == "b1" for e in entries)
        assert service.recent_activity("b2") == []

    def test_activity_can_be_disabled(self, state_dir: Path) -> None:
        service = BoardService(state_dir, {"activity": {"enabled": False}})
        todo = service.create_column("b1", "Todo")
        service.create_task("b1", todo.id, "Quiet")
        assert service.recent_activity("b1") == []

    def test_for_project_reads_config(self, tmp_path: Path) -> None:
        state = tmp_path / ".kanban_flow"
        state.mkdir()
        (state / "config.yaml").write_text("activity:\n  default_limit: 2\n", encoding="utf-8")
        service = BoardService.for_project(tmp_path)
        assert service.activity_limit == 2
        todo = service.create_column("b1", "Todo")
        for title in ("A", "B", "C"):
            service.create_task("b1", todo.id, title)
        assert len(service.recent_activity("b1")) == 2

    def test_activity_follows_commit_order(self, service: BoardService, board) -> None:
        def _create(n: int) -> None:
            service.create_task("b1", board["todo"], f"Parallel {n}")

        threads = [threading.Thread(target=_create, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        committed = [t.id for t in service.store.read_snapshot("b1").tasks if t.title.startswith("Parallel")]
        logged = [
            e.task_id for e in reversed(service.recent_activity("b1", 100))
            if e.action_description.startswith('Created task "Parallel')
        ]
        assert logged == committed


class TestBoardScoping:
    def test_delete_on_other_board_is_refused(self, service: BoardService, board) -> None:
        assert not service.delete_task(board["write"], board_id="b2")
        assert service.get_task(board["write"]) is not None
        assert service.delete_task(board["write"], board_id="b1")

    def test_task_lookups_on_other_board(self, service: BoardService, board) -> None:
        with pytest.raises(TaskNotFound):
            service.blockers(board["ship"], board_id="b2")
        with pytest.raises(TaskNotFound):
            service.dependencies(board["ship"], board_id="b2")
        with pytest.raises(TaskNotFound):
            service.selectable_prerequisites(board["ship"], board_id="b2")
        with pytest.raises(TaskNotFound):
            service.add_dependency(board["ship"], board["write"], board_id="b2")
        with pytest.raises(TaskNotFound):
            service.sync_dependencies(board["ship"], [], board_id="b2")
        assert service.blockers(board["ship"], board_id="b1") == ["Test"]

    def test_remove_dependency_on_other_board(self, service: BoardService, board) -> None:
        edge = service.dependencies(board["ship"])["dependencies"][0]
        with pytest.raises(DependencyNotFound):
            service.remove_dependency(edge.id, board_id="b2")
        assert service.blockers(board["ship"]) == ["Test"]
        assert service.remove_dependency(edge.id, board_id="b1").id == edge.id
