"""Pydantic schemas for citizen sessions."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    """Request to open a session; the body is optional."""
    device_id: str | None = Field(None, max_length=255)
    metadata: dict[str, Any] | None = None


class SessionCreated(BaseModel):
    success: bool = True
    session_id: UUID
    language: str


class LanguageUpdate(BaseModel):
    language: str | None = None


class LanguageUpdated(BaseModel):
    success: bool = True
    language: str


class SessionCheck(BaseModel):
    """Client-signal view of the session."""
    has_session: bool
    language: str | None = None


class OnboardingStateRead(BaseModel):
    state: str
    redirect_to: str | None = None
