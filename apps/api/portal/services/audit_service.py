"""
Status audit trail - append-only, hash-chained StatusEvent rows.

Each application has its own chain ordered by ``sequence``. Entry hashes
cover every immutable column so any edit or deletion is detectable by
``verify_status_chain``.
"""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.db.models import StatusEvent
from portal.db.models._common import utcnow

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64  # prev_hash of the first event in every chain


def canonical_json(obj: dict | None) -> str:
    """
    Serialize object to canonical JSON for consistent hashing.

    Uses sorted keys, compact separators, and str() for non-JSON types.
    """
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we write is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_event_hash(
    prev_hash: str,
    event_id: str,
    application_id: str,
    sequence: int,
    previous_status: str,
    new_status: str,
    changed_by: str,
    remarks: str,
    details_json: str,
    created_at: str,
) -> str:
    """Hash = SHA256(all immutable fields joined with |)."""
    data = "|".join(
        [
            prev_hash,
            event_id,
            application_id,
            str(sequence),
            previous_status,
            new_status,
            changed_by,
            remarks,
            details_json,
            created_at,
        ]
    )
    return hashlib.sha256(data.encode()).hexdigest()


def _hash_event(event: StatusEvent) -> str:
    return compute_event_hash(
        prev_hash=event.prev_hash,
        event_id=str(event.id),
        application_id=str(event.application_id),
        sequence=event.sequence,
        previous_status=event.previous_status or "",
        new_status=event.new_status,
        changed_by=str(event.changed_by) if event.changed_by else "",
        remarks=event.remarks or "",
        details_json=canonical_json(event.details),
        created_at=_as_utc(event.created_at).isoformat(),
    )


# =============================================================================
# Append
# =============================================================================


def append_status_event(
    db: Session,
    application_id: UUID,
    previous_status: str | None,
    new_status: str,
    changed_by: UUID | None = None,
    remarks: str | None = None,
    details: dict[str, Any] | None = None,
) -> StatusEvent:
    """
    Append one event to an application's chain and commit it.

    Raises SQLAlchemyError on store failure (including a concurrent append
    taking the same sequence); callers on the transition path use
    ``record_status_event`` instead.
    """
    last = db.execute(
        select(StatusEvent)
        .where(StatusEvent.application_id == application_id)
        .order_by(StatusEvent.sequence.desc())
        .limit(1)
    ).scalar_one_or_none()

    event = StatusEvent(
        application_id=application_id,
        sequence=(last.sequence + 1) if last else 1,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        remarks=remarks,
        details=details,
        prev_hash=last.entry_hash if last else GENESIS_HASH,
        created_at=utcnow(),
    )
    # id is needed before hashing
    event.id = uuid.uuid4()
    event.entry_hash = _hash_event(event)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def record_status_event(
    db: Session,
    application_id: UUID,
    previous_status: str | None,
    new_status: str,
    changed_by: UUID | None = None,
    remarks: str | None = None,
    details: dict[str, Any] | None = None,
) -> StatusEvent | None:
    """
    Best-effort append after a committed status transition.

    The transition is authoritative; a failed append is logged and
    swallowed so it never undoes or blocks the status change.
    """
    try:
        return append_status_event(
            db,
            application_id=application_id,
            previous_status=previous_status,
            new_status=new_status,
            changed_by=changed_by,
            remarks=remarks,
            details=details,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Status event append failed",
            extra={
                "application_id": str(application_id),
                "previous_status": previous_status,
                "new_status": new_status,
            },
        )
        return None


# =============================================================================
# Read / verify
# =============================================================================


def list_status_events(db: Session, application_id: UUID) -> list[StatusEvent]:
    """Events for an application, oldest first."""
    return list(
        db.execute(
            select(StatusEvent)
            .where(StatusEvent.application_id == application_id)
            .order_by(StatusEvent.sequence.asc(), StatusEvent.created_at.asc())
        ).scalars()
    )


def count_status_events(db: Session, application_id: UUID) -> int:
    return db.execute(
        select(func.count(StatusEvent.id)).where(StatusEvent.application_id == application_id)
    ).scalar_one()


@dataclass
class ChainVerification:
    """Outcome of verifying one application's chain."""

    application_id: UUID
    valid: bool = True
    events_checked: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.valid = False
        self.errors.append(message)


def verify_status_chain(db: Session, application_id: UUID) -> ChainVerification:
    """
    Verify an application's status chain.

    Checks, per event: the recomputed hash, linkage to the predecessor's
    hash, gap-free sequence numbers starting at 1, and that each event's
    ``previous_status`` equals the predecessor's ``new_status``.
    """
    result = ChainVerification(application_id=application_id)
    expected_prev_hash = GENESIS_HASH
    previous: StatusEvent | None = None

    for index, event in enumerate(list_status_events(db, application_id), start=1):
        result.events_checked += 1
        if event.sequence != index:
            result.fail(f"sequence gap at {index}: found {event.sequence}")
        if event.prev_hash != expected_prev_hash:
            result.fail(f"event {event.sequence}: prev_hash does not link to predecessor")
        if _hash_event(event) != event.entry_hash:
            result.fail(f"event {event.sequence}: entry_hash mismatch")
        if previous is not None and event.previous_status != previous.new_status:
            result.fail(
                f"event {event.sequence}: previous_status {event.previous_status!r} "
                f"!= prior new_status {previous.new_status!r}"
            )
        expected_prev_hash = event.entry_hash
        previous = event

    return result


def list_chained_application_ids(db: Session) -> list[UUID]:
    """Every application that has at least one status event."""
    return list(db.execute(select(StatusEvent.application_id).distinct()).scalars())
