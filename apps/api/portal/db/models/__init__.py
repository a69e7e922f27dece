"""SQLAlchemy ORM models."""

from portal.db.models.admin import AdminSession, AdminUser
from portal.db.models.applications import (
    Application,
    ApplicationSnapshot,
    ApplicationStep,
    StatusEvent,
)
from portal.db.models.citizens import Citizen, CitizenSession
from portal.db.models.consent import ConsentLog

__all__ = [
    "AdminSession",
    "AdminUser",
    "Application",
    "ApplicationSnapshot",
    "ApplicationStep",
    "Citizen",
    "CitizenSession",
    "ConsentLog",
    "StatusEvent",
]
