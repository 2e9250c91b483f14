"""Registration and login endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..models import schemas
from ..services.persistence import PersistenceService
from .deps import get_persistence

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=schemas.UserProfile)
async def register(
    payload: schemas.RegisterRequest,
    persistence: PersistenceService = Depends(get_persistence),
) -> schemas.UserProfile:
    """Create an account; the phone number must not be registered yet."""

    return await persistence.register(payload)


@router.post("/login", response_model=schemas.UserProfile)
async def login(
    payload: schemas.LoginRequest,
    persistence: PersistenceService = Depends(get_persistence),
) -> schemas.UserProfile:
    """Check a phone/password pair and return the stored profile.

    No token is issued; the client keeps the returned profile itself.
    """

    return await persistence.login(payload)
