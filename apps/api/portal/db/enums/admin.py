"""Staff role enums."""

from enum import Enum


class AdminRole(str, Enum):
    """
    Staff roles.

    - SUPER_ADMIN: everything, including staff account management
    - OFFICER: decides applications
    - CLERK: processes applications
    - VIEW_ONLY: read access, never writes
    """

    SUPER_ADMIN = "super_admin"
    OFFICER = "officer"
    CLERK = "clerk"
    VIEW_ONLY = "view_only"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
