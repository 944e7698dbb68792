"""Load optional board configuration from `.kanban_flow/config.yaml`."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE,
    DEFAULT_ACTIVITY_LIMIT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_RENUMBER_STEP,
    LOG_LEVEL_ENV_VAR,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def load_board_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional board config file.

    Args:
        project_dir: Directory that holds the `.kanban_flow/` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    project_dir = project_dir.resolve()
    path = project_dir / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _positive_float(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw) if raw > 0 else None


def get_positions_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the ordering-key settings.

    Args:
        config: Board configuration dictionary.

    Returns:
        A mapping with `renumber_min_gap` (None disables renumbering) and
        `renumber_step`.
    """
    return {
        "renumber_min_gap": _positive_float(_get_nested(config, "positions", "renumber_min_gap")),
        "renumber_step": _positive_float(_get_nested(config, "positions", "renumber_step"))
        or DEFAULT_RENUMBER_STEP,
    }


def get_activity_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the activity log settings.

    Args:
        config: Board configuration dictionary.

    Returns:
        A mapping with `enabled` and `default_limit`.
    """
    enabled = _get_nested(config, "activity", "enabled")
    limit = _get_nested(config, "activity", "default_limit")
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        limit = DEFAULT_ACTIVITY_LIMIT
    return {
        "enabled": enabled if isinstance(enabled, bool) else True,
        "default_limit": limit,
    }


def get_log_level(config: dict[str, Any]) -> str:
    """Resolve the log level from the environment, then the config file.

    Args:
        config: Board configuration dictionary.

    Returns:
        An upper-case loguru level name.
    """
    for raw in (os.environ.get(LOG_LEVEL_ENV_VAR), _get_nested(config, "logging", "level")):
        if isinstance(raw, str) and raw.upper() in VALID_LOG_LEVELS:
            return raw.upper()
    return DEFAULT_LOG_LEVEL
