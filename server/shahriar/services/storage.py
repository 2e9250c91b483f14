"""Whole-document JSON storage used by the persistence service."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


def empty_document() -> dict[str, list[dict[str, Any]]]:
    return {"users": [], "sessions": []}


def _normalize(document: Any) -> dict[str, Any]:
    if not isinstance(document, dict):
        return empty_document()
    if not isinstance(document.get("users"), list):
        document["users"] = []
    if not isinstance(document.get("sessions"), list):
        document["sessions"] = []
    return document


class DocumentStore(Protocol):
    """Storage seam: read the full document, write the full document back."""

    def load(self) -> dict[str, Any]:
        ...

    def save(self, document: dict[str, Any]) -> bool:
        ...


class JsonFileStore:
    """Keeps users and sessions in a single JSON file, rewritten on every save.

    There is no locking across processes and no partial update: the last writer
    wins. Read failures never propagate; they yield an empty document so that a
    request can still be answered.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._ensure_exists()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_exists(self) -> None:
        if self._path.exists():
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._write(empty_document())
            logger.info("Created empty database at %s", self._path)
        except OSError:
            logger.exception("Could not create database file at %s", self._path)

    def _write(self, document: dict[str, Any]) -> None:
        self._path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            return empty_document()
        try:
            raw = self._path.read_text(encoding="utf-8")
            return _normalize(json.loads(raw))
        except (OSError, ValueError):
            logger.exception("DB read error at %s - resetting structure", self._path)
            return empty_document()

    def save(self, document: dict[str, Any]) -> bool:
        try:
            self._write(document)
            return True
        except (OSError, TypeError, ValueError):
            logger.exception("DB write error at %s", self._path)
            return False


class InMemoryStore:
    """Document store for tests and ephemeral runs."""

    def __init__(self, document: dict[str, Any] | None = None, *, fail_writes: bool = False) -> None:
        self._document = _normalize(copy.deepcopy(document) if document is not None else empty_document())
        self.fail_writes = fail_writes
        self.save_count = 0

    def load(self) -> dict[str, Any]:
        return copy.deepcopy(self._document)

    def save(self, document: dict[str, Any]) -> bool:
        if self.fail_writes:
            logger.error("DB write error: in-memory store is set to fail writes")
            return False
        self._document = copy.deepcopy(document)
        self.save_count += 1
        return True

    @property
    def document(self) -> dict[str, Any]:
        return copy.deepcopy(self._document)
