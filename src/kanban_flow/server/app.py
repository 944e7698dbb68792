"""FastAPI application for the board service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .. import __version__
from ..board.service import BoardService
from .board_api import create_board_router


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir: Default project directory.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Kanban Flow",
        description="Dependency-aware ordering and moves for Kanban boards",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.default_project_dir = project_dir
    services: dict[Path, BoardService] = {}

    def _get_project_dir(project_dir_param: Optional[str] = None) -> Path:
        if project_dir_param:
            return Path(project_dir_param).expanduser().resolve()
        if app.state.default_project_dir:
            return Path(app.state.default_project_dir).resolve()
        return Path.cwd().resolve()

    def _get_service(project_dir_param: Optional[str] = None) -> BoardService:
        path = _get_project_dir(project_dir_param)
        if path not in services:
            logger.debug("Opening board service for {}", path)
            services[path] = BoardService.for_project(path)
        return services[path]

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"name": "Kanban Flow", "version": __version__, "status": "running"}

    app.include_router(create_board_router(_get_service))
    return app
