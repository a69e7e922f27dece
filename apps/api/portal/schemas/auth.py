"""Pydantic schemas for citizen identity endpoints."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Register (or log in) with a verified phone credential."""
    phone: str | None = None
    identity_document_id: str | None = Field(None, max_length=64)
    name: str | None = Field(None, max_length=255)
    name_hi: str | None = Field(None, max_length=255)
    access_token: str | None = None
    device_id: str | None = Field(None, max_length=255)


class AuthSessionRequest(BaseModel):
    """Session bootstrap variants."""
    mode: Literal["guest", "login", "demo"] = "guest"
    access_token: str | None = None
    phone: str | None = None
    device_id: str | None = Field(None, max_length=255)


class LinkSessionRequest(BaseModel):
    access_token: str | None = None


class AuthResponse(BaseModel):
    success: bool = True
    session_id: UUID | None = None
    citizen_id: UUID | None = None
    is_new_user: bool = False


class CitizenRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str | None
    name_hi: str | None
    identity_document_id: str | None
    is_verified: bool
    last_login: datetime | None
    phone_masked: str | None = None


class AuthUserRead(BaseModel):
    """Current citizen principal."""
    session_id: UUID
    language: str
    citizen: CitizenRead | None = None


class SessionIdRead(BaseModel):
    session_id: UUID | None = None


class ProfileRead(BaseModel):
    """Household profile from the family registry."""
    identity_document_id: str
    profile: dict[str, Any]
