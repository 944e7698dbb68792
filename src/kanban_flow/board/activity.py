"""Append-only board activity feed stored as JSON lines."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ..constants import ACTIVITY_FILE, DEFAULT_ACTIVITY_LIMIT
from ..engine.model import ActivityEntry
from ..io_utils import _append_event, _read_events


class ActivityLog:
    def __init__(self, state_dir: Path, enabled: bool = True) -> None:
        self._path = state_dir / ACTIVITY_FILE
        self.enabled = enabled

    def record(self, entry: ActivityEntry) -> bool:
        """Append *entry*.  Returns False if it was not written.

        Activity is informational; a write failure is logged and never
        propagates into the operation that produced it.
        """
        if not self.enabled:
            return False
        try:
            _append_event(self._path, entry.to_dict())
        except OSError:
            logger.exception("Failed to append activity {} for board {}", entry.action_type, entry.board_id)
            return False
        return True

    def recent(self, board_id: str, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[ActivityEntry]:
        """Newest-first activity for *board_id*."""
        if limit < 1:
            return []
        entries: list[ActivityEntry] = []
        for payload in reversed(_read_events(self._path)):
            if payload.get("board_id") != board_id:
                continue
            try:
                entries.append(ActivityEntry.from_dict(payload))
            except ValueError:
                logger.warning("Skipping malformed activity line {}", payload.get("id"))
                continue
            if len(entries) >= limit:
                break
        return entries

