"""Health and search placeholder endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..models import schemas
from ..services.persistence import PersistenceService
from .deps import get_persistence

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health", response_model=schemas.HealthResponse)
async def health(persistence: PersistenceService = Depends(get_persistence)) -> schemas.HealthResponse:
    return persistence.health()


@router.post("/vector-search", response_model=schemas.VectorSearchResponse)
async def vector_search(
    payload: schemas.VectorSearchRequest | None = None,
    persistence: PersistenceService = Depends(get_persistence),
) -> schemas.VectorSearchResponse:
    """Knowledge search is not wired to an index yet; returns a fixed message."""

    return persistence.vector_search(payload.query if payload else None)
