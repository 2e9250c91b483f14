"""Pending-task lookup used to brief the voice assistant."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskItem:
    title: str
    status: str


class TaskSource(Protocol):
    async def list_tasks(self, user_id: str) -> list[TaskItem]:
        ...


def _coerce_tasks(raw: object) -> list[TaskItem]:
    if not isinstance(raw, list):
        return []
    items: list[TaskItem] = []
    for entry in raw:
        if isinstance(entry, dict) and entry.get("title"):
            items.append(TaskItem(title=str(entry["title"]), status=str(entry.get("status", "pending"))))
    return items


class StaticTaskSource:
    """Fixed in-memory tasks, keyed by user id."""

    def __init__(self, tasks: Mapping[str, Iterable[TaskItem]] | None = None) -> None:
        self._tasks = {user_id: list(items) for user_id, items in (tasks or {}).items()}

    async def list_tasks(self, user_id: str) -> list[TaskItem]:
        return list(self._tasks.get(user_id, []))


class JsonTaskSource:
    """Reads ``{"<userId>": [{"title": ..., "status": ...}, ...]}`` from disk.

    A missing or malformed file means no tasks.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def _load(self, user_id: str) -> list[TaskItem]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not read tasks from %s", self._path)
            return []
        if not isinstance(data, dict):
            return []
        return _coerce_tasks(data.get(user_id))

    async def list_tasks(self, user_id: str) -> list[TaskItem]:
        return await asyncio.to_thread(self._load, user_id)
