"""Conversation session endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..models import schemas
from ..services.persistence import PersistenceService
from .deps import get_persistence

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("/{user_id}")
async def list_sessions(
    user_id: str,
    persistence: PersistenceService = Depends(get_persistence),
) -> list[dict[str, Any]]:
    """Return every session owned by ``user_id`` (possibly none)."""

    return await persistence.list_sessions(user_id)


@router.post("")
async def save_session(
    payload: schemas.SessionRecord,
    persistence: PersistenceService = Depends(get_persistence),
) -> dict[str, Any]:
    """Insert the session, or replace the stored one with the same id."""

    return await persistence.upsert_session(payload)


@router.delete("/{session_id}", response_model=schemas.SuccessResponse)
async def delete_session(
    session_id: str,
    persistence: PersistenceService = Depends(get_persistence),
) -> schemas.SuccessResponse:
    return await persistence.delete_session(session_id)
