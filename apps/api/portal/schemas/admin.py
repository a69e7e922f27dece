"""Pydantic schemas for staff authentication."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AdminLoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class AdminUserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None
    role: str
    is_active: bool
    last_login: datetime | None


class AdminLoginResponse(BaseModel):
    success: bool = True
    user: AdminUserRead
    expires_at: datetime
