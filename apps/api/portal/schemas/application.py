"""Pydantic schemas for applications, steps, snapshots and status events."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


METADATA_VERSION = 1


class ApplicationMetadata(BaseModel):
    """
    Versioned envelope over the application's JSON metadata bag.

    Fields the portal reads are typed; every other key a service flow
    stores is kept verbatim under ``extensions``.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = METADATA_VERSION
    service_code: str | None = None
    service_name_hi: str | None = None
    service_name_en: str | None = None
    applicant_name: str | None = None
    consent_id: str | None = None
    submitted_via_session: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        extensions = dict(data.get("extensions") or {})
        typed: dict[str, Any] = {}
        for key, value in data.items():
            if key == "extensions":
                continue
            if key in known:
                typed[key] = value
            else:
                extensions[key] = value
        typed["extensions"] = extensions
        return typed

    @classmethod
    def from_bag(cls, bag: dict | None) -> "ApplicationMetadata":
        return cls.model_validate(bag or {})

    def to_bag(self) -> dict[str, Any]:
        """Storage form; unset typed fields are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class ApplicationCreate(BaseModel):
    """Request to open a draft application."""
    service_id: str | None = Field(None, max_length=100)
    identity_document_id: str | None = None
    metadata: dict[str, Any] | None = None


class SubmitRequest(BaseModel):
    """Request to submit a draft."""
    consent_id: str | None = None


class SubmitResponse(BaseModel):
    success: bool = True
    submission_id: str
    status: str


class StepUpsert(BaseModel):
    """One answered form step."""
    step_number: int | None = Field(None, ge=0)
    step_identifier: str | None = Field(None, max_length=100)
    question_text_hi: str | None = None
    question_text_en: str | None = None
    user_response: str | None = None
    data: dict[str, Any] | None = None


class StepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    step_number: int
    step_identifier: str
    question_text_hi: str | None = None
    question_text_en: str | None = None
    user_response: str | None = None
    data: dict[str, Any] | None
    completed_at: datetime


class SnapshotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    frozen_at: datetime
    snapshot: dict[str, Any]


class StatusEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    sequence: int
    previous_status: str | None
    new_status: str
    changed_by: UUID | None
    remarks: str | None
    details: dict[str, Any] | None
    created_at: datetime


class ApplicationRead(BaseModel):
    """Application with its parsed metadata envelope."""
    id: UUID
    submission_id: str | None
    service_id: str
    identity_document_id: str | None
    status: str
    current_step: int
    metadata: ApplicationMetadata
    submitted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    steps: list[StepRead] = Field(default_factory=list)


class AdminStatusUpdate(BaseModel):
    """Staff request to move an application to a new status."""
    status: str | None = None
    remarks: str | None = Field(None, max_length=2000)


class AdminStatusResponse(BaseModel):
    success: bool = True
    application_id: UUID
    previous_status: str
    status: str


class ChainVerificationRead(BaseModel):
    application_id: UUID
    valid: bool
    events_checked: int
    errors: list[str]


class TimelineEntry(BaseModel):
    sequence: int
    new_status: str
    status: Literal["current", "completed"]
    title_en: str
    title_hi: str
    date: datetime
    description: str = ""


class StatusLookupRead(BaseModel):
    """Citizen-facing tracking view of one application."""
    application_id: UUID
    submission_id: str | None
    service_id: str
    service_code: str | None
    service_name_hi: str | None
    service_name_en: str | None
    status: str
    status_hi: str
    applicant_name: str | None
    submitted_at: datetime | None
    last_updated: datetime
    current_step: int
    timeline: list[TimelineEntry] = Field(default_factory=list)
