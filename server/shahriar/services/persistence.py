"""User and session persistence on top of a whole-document store."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import date
from typing import Any, Callable, Optional

from ..models import schemas
from .storage import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_BIO = "New user"
VECTOR_SEARCH_PLACEHOLDER = "Search functionality pending OpenAI key configuration."


class PersistenceError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RecordValidationError(PersistenceError):
    status_code = 400


class AuthenticationFailed(PersistenceError):
    status_code = 401


class RecordNotFound(PersistenceError):
    status_code = 404


class DuplicateRecord(PersistenceError):
    status_code = 409


class StorageWriteError(PersistenceError):
    status_code = 500


def _public_user(record: dict[str, Any]) -> schemas.UserProfile:
    safe = {key: value for key, value in record.items() if key != "password"}
    return schemas.UserProfile.model_validate(safe)


class PersistenceService:
    """CRUD over users and sessions.

    Every operation loads the full document, changes it in memory and writes the
    full document back. An ``asyncio.Lock`` serialises those cycles inside one
    process; separate processes sharing the file can still lose updates.
    """

    def __init__(self, store: DocumentStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock
        self._lock = asyncio.Lock()

    async def _read(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._store.load)

    async def _write(self, document: dict[str, Any], failure_message: str) -> None:
        saved = await asyncio.to_thread(self._store.save, document)
        if not saved:
            raise StorageWriteError(failure_message)

    def _next_user_id(self, users: list[dict[str, Any]]) -> str:
        candidate = int(self._clock() * 1000)
        taken = {str(user.get("id")) for user in users}
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    # --- Authentication -------------------------------------------------

    async def register(self, payload: schemas.RegisterRequest) -> schemas.UserProfile:
        logger.info("Processing register for phone %s", payload.phone)
        async with self._lock:
            document = await self._read()
            users = document["users"]
            if any(user.get("phone") == payload.phone for user in users):
                raise DuplicateRecord("This phone number is already registered.")

            record = {
                "id": self._next_user_id(users),
                "phone": payload.phone,
                "password": payload.password,
                "name": payload.name,
                "email": "",
                "bio": DEFAULT_BIO,
                "joinedDate": date.today().isoformat(),
                "learnedData": [],
                "traits": [],
                "customInstructions": "",
            }
            users.append(record)
            await self._write(document, "Failed to save the new account.")
        return _public_user(record)

    async def login(self, payload: schemas.LoginRequest) -> schemas.UserProfile:
        logger.info("Processing login for phone %s", payload.phone)
        document = await self._read()
        user = next((u for u in document["users"] if u.get("phone") == payload.phone), None)
        if user is None:
            raise RecordNotFound("No account found for this phone number.")
        stored = str(user.get("password", "")).encode("utf-8")
        if not secrets.compare_digest(stored, payload.password.encode("utf-8")):
            raise AuthenticationFailed("Wrong password.")
        return _public_user(user)

    # --- Users ----------------------------------------------------------

    async def update_user(self, payload: schemas.UserUpdateRequest) -> dict[str, Any]:
        if not payload.id:
            raise RecordValidationError("ID required")

        incoming = payload.model_dump(by_alias=True)
        async with self._lock:
            document = await self._read()
            users = document["users"]
            index = next((i for i, u in enumerate(users) if u.get("id") == payload.id), None)
            if index is None:
                raise RecordNotFound("User not found")
            current_password = users[index].get("password")
            users[index] = {**incoming, "password": current_password}
            await self._write(document, "Update failed")
        return incoming

    async def get_user(self, user_id: str) -> schemas.UserProfile:
        document = await self._read()
        user = next((u for u in document["users"] if u.get("id") == user_id), None)
        if user is None:
            raise RecordNotFound("User not found")
        return _public_user(user)

    # --- Sessions -------------------------------------------------------

    async def list_sessions(self, user_id: str) -> list[dict[str, Any]]:
        document = await self._read()
        return [s for s in document["sessions"] if s.get("userId") == user_id]

    async def upsert_session(self, payload: schemas.SessionRecord) -> dict[str, Any]:
        record = payload.model_dump(by_alias=True)
        async with self._lock:
            document = await self._read()
            sessions = document["sessions"]
            index = next((i for i, s in enumerate(sessions) if s.get("id") == record["id"]), None)
            if index is None:
                sessions.append(record)
            else:
                sessions[index] = record
            await self._write(document, "Save failed")
        return record

    async def delete_session(self, session_id: str) -> schemas.SuccessResponse:
        async with self._lock:
            document = await self._read()
            before = len(document["sessions"])
            document["sessions"] = [s for s in document["sessions"] if s.get("id") != session_id]
            if len(document["sessions"]) == before:
                raise RecordNotFound("Session not found")
            await self._write(document, "Delete failed")
        return schemas.SuccessResponse(success=True)

    # --- Misc -----------------------------------------------------------

    def health(self) -> schemas.HealthResponse:
        return schemas.HealthResponse(status="online")

    def vector_search(self, query: Optional[str]) -> schemas.VectorSearchResponse:
        # TODO: back this with an embedding index once an embeddings key is provisioned.
        logger.info("Vector search requested for %r (placeholder)", query)
        return schemas.VectorSearchResponse(result=VECTOR_SEARCH_PLACEHOLDER)
