"""Application lifecycle enums and the transition table."""

from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_PROCESS = "in_process"
    NEEDS_INFO = "needs_info"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


# Citizen-facing Hindi labels for the tracking timeline.
STATUS_LABELS_HI: dict[str, str] = {
    ApplicationStatus.DRAFT.value: "मसौदा",
    ApplicationStatus.SUBMITTED.value: "जमा किया गया",
    ApplicationStatus.IN_PROCESS.value: "प्रक्रियाधीन",
    ApplicationStatus.NEEDS_INFO.value: "जानकारी आवश्यक",
    ApplicationStatus.APPROVED.value: "स्वीकृत",
    ApplicationStatus.REJECTED.value: "अस्वीकृत",
}


# Statuses a staff member may set directly.
ADMIN_SETTABLE_STATUSES = frozenset(
    {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.IN_PROCESS,
        ApplicationStatus.NEEDS_INFO,
    }
)

TERMINAL_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

STATUS_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.SUBMITTED: ADMIN_SETTABLE_STATUSES,
    ApplicationStatus.IN_PROCESS: frozenset(
        {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.NEEDS_INFO}
    ),
    ApplicationStatus.NEEDS_INFO: frozenset(
        {ApplicationStatus.IN_PROCESS, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """True if ``current -> target`` is a legal lifecycle edge."""
    if not ApplicationStatus.has_value(current) or not ApplicationStatus.has_value(target):
        return False
    return ApplicationStatus(target) in STATUS_TRANSITIONS[ApplicationStatus(current)]
