"""Citizen identities and the device sessions that carry them."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import DEFAULT_LANGUAGE
from portal.db.models._common import JSONType, utcnow

if TYPE_CHECKING:
    from portal.db.models.consent import ConsentLog


class Citizen(Base):
    """
    A verified end-user identity.

    Created on first verified registration. ``phone`` holds the last ten
    digits only and is the natural key for login.
    """

    __tablename__ = "citizens"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    phone: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    identity_document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_hi: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    sessions: Mapped[list["CitizenSession"]] = relationship(back_populates="citizen")


class CitizenSession(Base):
    """
    One client device/browser instance.

    The primary key doubles as the opaque bearer token. A session starts
    anonymous and is linked to a citizen at most once; re-linking issues a
    new session row rather than rewriting ``citizen_id``.
    """

    __tablename__ = "citizen_sessions"
    __table_args__ = (
        Index("idx_citizen_sessions_citizen", "citizen_id"),
        Index("idx_citizen_sessions_auth_user", "auth_user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    citizen_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True
    )
    auth_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    identity_document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str] = mapped_column(
        String(5), default=DEFAULT_LANGUAGE.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    citizen: Mapped["Citizen | None"] = relationship(back_populates="sessions")
    consents: Mapped[list["ConsentLog"]] = relationship(back_populates="session")
