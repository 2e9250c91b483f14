"""Shared router dependencies."""
from __future__ import annotations

from fastapi import Request

from ..services.persistence import PersistenceService


def get_persistence(request: Request) -> PersistenceService:
    """Return the persistence service attached to the running application."""

    return request.app.state.persistence
