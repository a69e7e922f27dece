"""Pydantic schemas for consent capture."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SessionConsentRequest(BaseModel):
    consent_type: str | None = None
    data_snapshot: dict[str, Any] | None = None


class ApplicationConsentRequest(BaseModel):
    application_id: UUID | None = None
    consent_id: UUID | None = None
    consent_type: str | None = None
    purpose_hi: str | None = None
    purpose_en: str | None = None
    data_snapshot: dict[str, Any] | None = None
    voice_confirmation: bool = False


class ConsentRecorded(BaseModel):
    success: bool = True
    consent_id: UUID | None = None
    persisted: bool = True


class ConsentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID | None
    application_id: UUID | None
    consent_type: str
    purpose: str
    purpose_hi: str | None
    purpose_en: str | None
    ui_confirmation: bool
    voice_confirmation: bool
    confirmed_at: datetime
