from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from .utils import _now_iso


def _load_data_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """
    Load JSON/YAML and return (data, error_message).

    Parse and IO failures are reported instead of swallowed so callers can
    avoid overwriting a corrupted board file.
    """
    if not path.exists():
        return default, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            if path.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            else:
                data = json.load(handle)
        if data is None:
            return default, None
        if not isinstance(data, dict):
            return default, f"{path.name}: expected object, got {type(data).__name__}"
        return data, None
    except OSError as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except json.JSONDecodeError as exc:
        return default, f"{path.name}: JSONDecodeError: {exc}"
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def _atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(
            data,
            handle,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def _save_data(path: Path, data: dict[str, Any]) -> None:
    if path.suffix in {".yaml", ".yml"}:
        _atomic_write_yaml(path, data)
    else:
        _atomic_write_json(path, data)


def _append_event(events_path: Path, event: dict[str, Any]) -> None:
    events_path.parent.mkdir(parents=True, exist_ok=True)
    payload = dict(event)
    payload.setdefault("created_at", _now_iso())
    line = json.dumps(payload) + "\n"
    with open(events_path, "a", encoding="utf-8") as handle:
        handle.write(line)
        handle.flush()
        os.fsync(handle.fileno())


def _read_events(events_path: Path) -> list[dict[str, Any]]:
    """Read every well-formed JSON object line from *events_path*."""
    if not events_path.exists():
        return []
    events: list[dict[str, Any]] = []
    for line in events_path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            events.append(payload)
    return events
