"""Service applications, their steps, snapshots and status audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import ApplicationStatus
from portal.db.models._common import ImmutableRowError, JSONType, utcnow


class Application(Base):
    """
    A citizen's request for one government service.

    Created in ``draft`` by the service-catalog flow. ``submission_id`` is
    assigned exactly once, at the draft -> submitted transition.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index("idx_applications_status", "status"),
        Index("idx_applications_session", "session_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    session_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("citizen_sessions.id", ondelete="SET NULL"), nullable=True
    )
    citizen_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True
    )
    identity_document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    service_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ApplicationStatus.DRAFT.value, nullable=False
    )
    current_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    steps: Mapped[list["ApplicationStep"]] = relationship(
        back_populates="application",
        order_by="ApplicationStep.step_number",
        cascade="all, delete-orphan",
    )
    events: Mapped[list["StatusEvent"]] = relationship(
        back_populates="application", order_by="StatusEvent.sequence"
    )


class ApplicationStep(Base):
    """One answered step of an application form; upserted by identifier."""

    __tablename__ = "application_steps"
    __table_args__ = (
        UniqueConstraint(
            "application_id", "step_identifier", name="uq_application_steps_identifier"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    application_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    step_identifier: Mapped[str] = mapped_column(String(100), nullable=False)
    question_text_hi: Mapped[str | None] = mapped_column(Text, nullable=True)
    question_text_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    completed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    application: Mapped["Application"] = relationship(back_populates="steps")


class ApplicationSnapshot(Base):
    """Frozen copy of an application, its service and steps."""

    __tablename__ = "application_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    application_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)
    frozen_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class StatusEvent(Base):
    """
    Append-only audit row for one application status transition.

    Events form a per-application hash chain ordered by ``sequence``.
    ``changed_by`` is null for system-triggered transitions.
    """

    __tablename__ = "status_events"
    __table_args__ = (
        UniqueConstraint("application_id", "sequence", name="uq_status_events_sequence"),
        Index("idx_status_events_app_created", "application_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    application_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Tamper-evident hash chain
    prev_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    application: Mapped["Application"] = relationship(back_populates="events")


@event.listens_for(StatusEvent, "before_update")
def _reject_status_event_update(mapper, connection, target):
    """Status events are append-only."""
    raise ImmutableRowError(f"StatusEvent {target.id} is immutable")
