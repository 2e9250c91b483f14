"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model speaking the camelCase JSON used by the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(BaseModel):
    """Incoming payload for creating a new account."""

    phone: str = Field(..., min_length=1, description="Phone number, unique per account")
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, description="Display name")


class LoginRequest(BaseModel):
    """Credentials for a plain phone/password login."""

    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserProfile(CamelModel):
    """Stored identity as returned to clients (never carries the password)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    phone: str
    name: str
    email: str = ""
    bio: str = ""
    joined_date: Optional[str] = None
    learned_data: List[Any] = Field(default_factory=list)
    traits: List[Any] = Field(default_factory=list)
    custom_instructions: str = ""


class UserUpdateRequest(CamelModel):
    """Full identity record sent by the profile editor.

    ``password`` is accepted so that clients sending the whole record do not fail
    validation, but it is never stored nor echoed back.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    email: str = ""
    bio: str = ""
    joined_date: Optional[str] = None
    learned_data: List[Any] = Field(default_factory=list)
    traits: List[Any] = Field(default_factory=list)
    custom_instructions: str = ""
    password: Optional[str] = Field(default=None, exclude=True)


class SessionRecord(CamelModel):
    """Conversation record owned by a user; any extra payload is kept verbatim."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1, description="Client supplied session identifier")
    user_id: Optional[str] = Field(default=None, description="Owning user id")


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str = "online"


class VectorSearchRequest(BaseModel):
    query: Optional[str] = None


class VectorSearchResponse(BaseModel):
    result: str


class ErrorResponse(BaseModel):
    """Shape of every error body produced by the API."""

    error: str
