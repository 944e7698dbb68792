from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .board.service import BoardService
from .config import get_log_level, load_board_config
from .engine.moves import MoveRequest, MoveStatus
from .errors import BoardEngineError


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _service(args: argparse.Namespace) -> BoardService:
    return BoardService.for_project(_resolve_project_dir(args.project_dir))


def _emit(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + '\n')


def _board(args: argparse.Namespace) -> int:
    _emit(_service(args).board_view(args.board_id))
    return 0


def _move(args: argparse.Namespace) -> int:
    service = _service(args)
    task = service.get_task(args.task_id)
    if task is None:
        sys.stderr.write(f"Task {args.task_id} not found\n")
        return 1
    request = MoveRequest(
        task_id=task.id,
        source_column_id=task.column_id,
        destination_column_id=args.to_column,
        destination_index=args.index,
    )
    outcome = service.move_task(task.board_id, request)
    _emit({
        'status': outcome.status.value,
        'message': outcome.message,
        'blocking_titles': outcome.blocking_titles,
        'position': outcome.mutation.new_position if outcome.mutation else None,
    })
    return 1 if outcome.status == MoveStatus.BLOCKED else 0


def _depend(args: argparse.Namespace) -> int:
    service = _service(args)
    if args.remove:
        edge = service.remove_dependency(args.remove)
        _emit({'removed': edge.to_dict()})
        return 0
    if not args.task_id or not args.depends_on:
        sys.stderr.write("depend needs TASK_ID and --on DEPENDS_ON (or --remove EDGE_ID)\n")
        return 1
    change = service.add_dependency(args.task_id, args.depends_on)
    if not change.decision.allowed:
        _emit({'allowed': False, 'reason': change.decision.reason.value if change.decision.reason else None,
               'message': change.decision.message})
        return 1
    _emit({'allowed': True, 'created': change.created, 'dependency': change.edge.to_dict() if change.edge else None})
    return 0


def _blockers(args: argparse.Namespace) -> int:
    titles = _service(args).blockers(args.task_id)
    _emit({'task_id': args.task_id, 'blocking_titles': titles, 'can_complete': not titles})
    return 0


def _activity(args: argparse.Namespace) -> int:
    entries = _service(args).recent_activity(args.board_id, args.limit)
    _emit({'activities': [e.to_dict() for e in entries]})
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='kanban-flow', description='Dependency-aware Kanban board engine')
    parser.add_argument('--project-dir', default=None, help='Project directory (default: current directory)')
    parser.add_argument('--log-level', default=None, help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    board = subparsers.add_parser('board', help='Show a board with its columns and tasks')
    board.add_argument('board_id')
    board.set_defaults(func=_board)

    move = subparsers.add_parser('move', help='Move a task to a column and index')
    move.add_argument('task_id')
    move.add_argument('--to-column', required=True)
    move.add_argument('--index', type=int, default=0)
    move.set_defaults(func=_move)

    depend = subparsers.add_parser('depend', help='Add or remove a task dependency')
    depend.add_argument('task_id', nargs='?')
    depend.add_argument('--on', dest='depends_on', default=None, help='Prerequisite task id')
    depend.add_argument('--remove', default=None, metavar='EDGE_ID', help='Remove a dependency edge')
    depend.set_defaults(func=_depend)

    blockers = subparsers.add_parser('blockers', help='List prerequisites keeping a task out of the last column')
    blockers.add_argument('task_id')
    blockers.set_defaults(func=_blockers)

    activity = subparsers.add_parser('activity', help='Show recent board activity')
    activity.add_argument('board_id')
    activity.add_argument('--limit', type=int, default=None)
    activity.set_defaults(func=_activity)

    serve = subparsers.add_parser('serve', help='Start the HTTP API')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', default=8000, type=int)
    serve.set_defaults(func=_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config, _ = load_board_config(_resolve_project_dir(args.project_dir))
    configure_logging(args.log_level or get_log_level(config))
    try:
        return int(args.func(args))
    except BoardEngineError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
