"""Board API endpoints.

This module provides a FastAPI router for the board view, drag-and-drop
moves and dependency management.  It is mounted under
``/api/boards/{board_id}`` by :func:`kanban_flow.server.app.create_app`.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from ..board.service import BoardService
from ..engine.model import TaskPriority
from ..engine.moves import MoveRequest, MoveStatus
from ..errors import BoardEngineError, DependencyNotFound, StaleSnapshotError


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateColumnRequest(BaseModel):
    title: str = Field(min_length=1)


class CreateTaskRequest(BaseModel):
    column_id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[str] = None
    assignee_id: Optional[str] = None
    position: Optional[float] = Field(default=None, allow_inf_nan=False)
    dependency_ids: list[str] = Field(default_factory=list)


class MoveTaskRequest(BaseModel):
    source_column_id: str
    destination_column_id: str
    destination_index: int = Field(ge=0)
    source_index: Optional[int] = Field(default=None, ge=0)


class AddDependencyRequest(BaseModel):
    depends_on: str


class SyncDependenciesRequest(BaseModel):
    dependency_ids: list[str]


class TaskResponse(BaseModel):
    task: dict[str, Any]


class ColumnResponse(BaseModel):
    column: dict[str, Any]


class MoveResponse(BaseModel):
    status: str
    message: str
    mutation: Optional[dict[str, Any]] = None
    activity: Optional[dict[str, Any]] = None


class DependencyResponse(BaseModel):
    dependency: dict[str, Any]
    created: bool


class DependencyListResponse(BaseModel):
    dependencies: list[dict[str, Any]]
    dependents: list[dict[str, Any]]


class SyncResponse(BaseModel):
    added: list[dict[str, Any]]
    removed: list[dict[str, Any]]
    rejected: dict[str, str]


class BlockersResponse(BaseModel):
    task_id: str
    blocking_titles: list[str]
    can_complete: bool


class ActivityResponse(BaseModel):
    activities: list[dict[str, Any]]
    total: int


def _not_found(exc: BoardEngineError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_board_router(get_service: Callable[[Optional[str]], BoardService]) -> APIRouter:
    """Create the board API router.

    Parameters
    ----------
    get_service:
        A callable ``(project_dir_param: str | None) -> BoardService`` that
        resolves the service for the current request's project directory.
    """
    router = APIRouter(prefix="/api/boards/{board_id}", tags=["boards"])

    @router.get("")
    async def get_board(
        board_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        return get_service(project_dir).board_view(board_id)

    @router.post("/columns", response_model=ColumnResponse, status_code=201)
    async def create_column(
        board_id: str,
        body: CreateColumnRequest,
        project_dir: Optional[str] = Query(None),
    ) -> ColumnResponse:
        column = get_service(project_dir).create_column(board_id, body.title)
        return ColumnResponse(column=column.to_dict())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @router.post("/tasks", response_model=TaskResponse, status_code=201)
    async def create_task(
        board_id: str,
        body: CreateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        service = get_service(project_dir)
        try:
            task = service.create_task(
                board_id,
                body.column_id,
                body.title,
                description=body.description,
                priority=body.priority.value,
                due_date=body.due_date,
                assignee_id=body.assignee_id,
                position=body.position,
                dependency_ids=body.dependency_ids,
            )
        except BoardEngineError as e:
            raise _not_found(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return TaskResponse(task=task.to_dict())

    @router.delete("/tasks/{task_id}")
    async def delete_task(
        board_id: str,
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        if not get_service(project_dir).delete_task(task_id, board_id=board_id):
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return {"status": "deleted"}

    @router.post("/tasks/{task_id}/move", response_model=MoveResponse)
    async def move_task(
        board_id: str,
        task_id: str,
        body: MoveTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> Any:
        service = get_service(project_dir)
        request = MoveRequest(task_id=task_id, **body.model_dump())
        try:
            outcome = service.move_task(board_id, request)
        except StaleSnapshotError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except BoardEngineError as e:
            raise _not_found(e)

        if outcome.status == MoveStatus.BLOCKED:
            return JSONResponse(
                status_code=409,
                content={
                    "status": outcome.status.value,
                    "message": outcome.message,
                    "blocking_titles": outcome.blocking_titles,
                },
            )
        return MoveResponse(
            status=outcome.status.value,
            message=outcome.message,
            mutation=asdict(outcome.mutation) if outcome.mutation else None,
            activity=outcome.activity.to_dict() if outcome.activity else None,
        )

    @router.get("/tasks/{task_id}/blockers", response_model=BlockersResponse)
    async def get_blockers(
        board_id: str,
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> BlockersResponse:
        try:
            titles = get_service(project_dir).blockers(task_id, board_id=board_id)
        except BoardEngineError as e:
            raise _not_found(e)
        return BlockersResponse(task_id=task_id, blocking_titles=titles, can_complete=not titles)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.get("/tasks/{task_id}/dependencies", response_model=DependencyListResponse)
    async def list_dependencies(
        board_id: str,
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> DependencyListResponse:
        try:
            edges = get_service(project_dir).dependencies(task_id, board_id=board_id)
        except BoardEngineError as e:
            raise _not_found(e)
        return DependencyListResponse(
            dependencies=[e.to_dict() for e in edges["dependencies"]],
            dependents=[e.to_dict() for e in edges["dependents"]],
        )

    @router.post("/tasks/{task_id}/dependencies", response_model=DependencyResponse, status_code=201)
    async def add_dependency(
        board_id: str,
        task_id: str,
        body: AddDependencyRequest,
        project_dir: Optional[str] = Query(None),
    ) -> DependencyResponse:
        try:
            change = get_service(project_dir).add_dependency(task_id, body.depends_on, board_id=board_id)
        except BoardEngineError as e:
            raise _not_found(e)
        if not change.decision.allowed or change.edge is None:
            reason = change.decision.reason.value if change.decision.reason else None
            raise HTTPException(
                status_code=400,
                detail={"reason": reason, "message": change.decision.message},
            )
        return DependencyResponse(dependency=change.edge.to_dict(), created=change.created)

    @router.put("/tasks/{task_id}/dependencies", response_model=SyncResponse)
    async def sync_dependencies(
        board_id: str,
        task_id: str,
        body: SyncDependenciesRequest,
        project_dir: Optional[str] = Query(None),
    ) -> SyncResponse:
        try:
            result = get_service(project_dir).sync_dependencies(
                task_id, body.dependency_ids, board_id=board_id
            )
        except BoardEngineError as e:
            raise _not_found(e)
        if result.rejected:
            logger.info("Dependency sync for {} rejected {}", task_id, sorted(result.rejected))
        return SyncResponse(
            added=[e.to_dict() for e in result.added],
            removed=[e.to_dict() for e in result.removed],
            rejected={k: v.value for k, v in result.rejected.items()},
        )

    @router.delete("/dependencies/{edge_id}")
    async def remove_dependency(
        board_id: str,
        edge_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        try:
            get_service(project_dir).remove_dependency(edge_id, board_id=board_id)
        except DependencyNotFound as e:
            raise _not_found(e)
        return {"status": "deleted"}

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    @router.get("/activity", response_model=ActivityResponse)
    async def get_activity(
        board_id: str,
        limit: Optional[int] = Query(None, ge=1, le=500),
        project_dir: Optional[str] = Query(None),
    ) -> ActivityResponse:
        entries = get_service(project_dir).recent_activity(board_id, limit)
        return ActivityResponse(activities=[e.to_dict() for e in entries], total=len(entries))

    return router
