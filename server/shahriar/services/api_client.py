"""HTTP client the voice client uses to talk to the persistence service."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..models.schemas import SessionRecord, UserProfile

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """Non-2xx answer from the persistence service."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class BackendClient:
    """Thin async wrapper over the ``/api`` routes."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.is_success:
            return response.json()
        try:
            message = response.json().get("error") or response.text
        except ValueError:
            message = response.text
        logger.warning("%s %s -> %d %s", method, path, response.status_code, message)
        raise BackendError(response.status_code, message)

    async def login(self, phone: str, password: str) -> UserProfile:
        data = await self._request("POST", "/api/auth/login", json={"phone": phone, "password": password})
        return UserProfile.model_validate(data)

    async def get_user(self, user_id: str) -> UserProfile:
        data = await self._request("GET", f"/api/user/{user_id}")
        return UserProfile.model_validate(data)

    async def list_sessions(self, user_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/sessions/{user_id}")

    async def save_session(self, record: SessionRecord) -> dict[str, Any]:
        return await self._request("POST", "/api/sessions", json=record.model_dump(by_alias=True))
