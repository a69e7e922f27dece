"""Consent audit records."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.models._common import ImmutableRowError, JSONType, utcnow

if TYPE_CHECKING:
    from portal.db.models.citizens import CitizenSession


class ConsentLog(Base):
    """
    Immutable record that a data-use disclosure was acknowledged.

    Scoped to a session, an application, or both; never neither.
    """

    __tablename__ = "consent_logs"
    __table_args__ = (
        CheckConstraint(
            "session_id IS NOT NULL OR application_id IS NOT NULL",
            name="ck_consent_logs_scope",
        ),
        Index("idx_consent_logs_session", "session_id"),
        Index("idx_consent_logs_application", "application_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("citizen_sessions.id", ondelete="SET NULL"), nullable=True
    )
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("applications.id", ondelete="SET NULL"), nullable=True
    )
    consent_type: Mapped[str] = mapped_column(String(30), nullable=False)  # ConsentType
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    purpose_hi: Mapped[str | None] = mapped_column(Text, nullable=True)
    purpose_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_snapshot: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    ui_confirmation: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    voice_confirmation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    confirmed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    session: Mapped["CitizenSession | None"] = relationship(back_populates="consents")


@event.listens_for(ConsentLog, "before_update")
def _reject_consent_update(mapper, connection, target):
    """Consent rows are write-once."""
    raise ImmutableRowError(f"ConsentLog {target.id} is immutable")
