"""Enum definitions for portal constants."""

from portal.db.enums.admin import AdminRole
from portal.db.enums.applications import (
    ADMIN_SETTABLE_STATUSES,
    ApplicationStatus,
    STATUS_TRANSITIONS,
    STATUS_LABELS_HI,
    TERMINAL_STATUSES,
    can_transition,
)
from portal.db.enums.consent import ConsentType, default_purpose, default_purposes
from portal.db.enums.language import DEFAULT_LANGUAGE, Language
from portal.db.enums.permissions import ROLES_CAN_SET_STATUS, ROLES_CAN_VIEW_AUDIT

__all__ = [
    "ADMIN_SETTABLE_STATUSES",
    "AdminRole",
    "ApplicationStatus",
    "ConsentType",
    "DEFAULT_LANGUAGE",
    "Language",
    "ROLES_CAN_SET_STATUS",
    "ROLES_CAN_VIEW_AUDIT",
    "STATUS_LABELS_HI",
    "STATUS_TRANSITIONS",
    "TERMINAL_STATUSES",
    "can_transition",
    "default_purpose",
    "default_purposes",
]
