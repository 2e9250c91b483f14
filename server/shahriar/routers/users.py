"""Profile endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..models import schemas
from ..services.persistence import PersistenceService
from .deps import get_persistence

router = APIRouter(prefix="/api/user", tags=["users"])


@router.post("/update")
async def update_user(
    payload: schemas.UserUpdateRequest,
    persistence: PersistenceService = Depends(get_persistence),
) -> dict[str, Any]:
    """Overwrite a profile. The stored password is always kept."""

    return await persistence.update_user(payload)


@router.get("/{user_id}", response_model=schemas.UserProfile)
async def get_user(
    user_id: str,
    persistence: PersistenceService = Depends(get_persistence),
) -> schemas.UserProfile:
    return await persistence.get_user(user_id)
