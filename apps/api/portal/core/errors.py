"""Error taxonomy shared by services and routers.

Services raise these; ``portal.main`` renders them as ``{"detail": ...}``
with the status code carried by the class.
"""


class PortalError(Exception):
    """Base exception for portal service errors."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(PortalError):
    """Missing or invalid bearer credential."""

    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(PortalError):
    """Authenticated but not permitted."""

    status_code = 403
    default_message = "Permission denied"


class NotFoundError(PortalError):
    """Unknown id."""

    status_code = 404
    default_message = "Not found"


class ConflictError(PortalError):
    """State-machine guard violated (e.g. submitting a non-draft)."""

    # Clients of the submit endpoint expect 400 for a not-draft application.
    status_code = 400
    default_message = "Conflict"


class InternalError(PortalError):
    """Store or collaborator failure."""

    status_code = 500
