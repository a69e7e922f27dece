"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    session_id: str | UUID | None = None,
    citizen_id: str | UUID | None = None,
    admin_id: str | UUID | None = None,
    application_id: str | UUID | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never phones or names)."""
    context: dict[str, Any] = {}
    if session_id:
        context["session_id"] = str(session_id)
    if citizen_id:
        context["citizen_id"] = str(citizen_id)
    if admin_id:
        context["admin_id"] = str(admin_id)
    if application_id:
        context["application_id"] = str(application_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
