"""Bearer credential names and cookie writers.

Citizen and staff credentials live in separate namespaces; nothing here
ever reads or writes the admin cookie from a citizen code path.
"""

from fastapi import Response

from portal.core.config import settings


# Citizen domain
SESSION_COOKIE = "session_id"
CITIZEN_COOKIE = "citizen_id"
LANGUAGE_COOKIE = "language"
CONSENT_COOKIE = "consent"

GUEST_CITIZEN = "guest"

# Staff domain
ADMIN_COOKIE = "admin_session"

COOKIE_PATH = "/"
DAY_SECONDS = 24 * 3600


def set_session_cookie(response: Response, session_id: str) -> None:
    """Citizen session bearer: HTTP-only, long-lived."""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        max_age=settings.CITIZEN_SESSION_DAYS * DAY_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path=COOKIE_PATH,
    )


def set_citizen_cookie(response: Response, citizen_id: str) -> None:
    """Citizen-link marker (``guest`` for unlinked sessions)."""
    response.set_cookie(
        key=CITIZEN_COOKIE,
        value=citizen_id,
        max_age=settings.CITIZEN_SESSION_DAYS * DAY_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path=COOKIE_PATH,
    )


def set_language_cookie(response: Response, language: str) -> None:
    """Language preference, readable by client code."""
    response.set_cookie(
        key=LANGUAGE_COOKIE,
        value=language,
        max_age=settings.LANGUAGE_COOKIE_DAYS * DAY_SECONDS,
        httponly=False,
        samesite="lax",
        secure=settings.cookie_secure,
        path=COOKIE_PATH,
    )


def set_consent_cookie(response: Response) -> None:
    """Marker set once session consent was captured."""
    response.set_cookie(
        key=CONSENT_COOKIE,
        value="true",
        max_age=settings.CITIZEN_SESSION_DAYS * DAY_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path=COOKIE_PATH,
    )


def clear_citizen_cookies(response: Response) -> None:
    """Drop the citizen bearer and its derived markers (language is kept)."""
    for key in (SESSION_COOKIE, CITIZEN_COOKIE, CONSENT_COOKIE):
        response.delete_cookie(key, path=COOKIE_PATH)


def set_admin_cookie(response: Response, token: str) -> None:
    """Staff bearer: strict cross-site policy, short-lived."""
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        max_age=settings.ADMIN_SESSION_HOURS * 3600,
        httponly=True,
        samesite="strict",
        secure=settings.cookie_secure,
        path=COOKIE_PATH,
    )


def clear_admin_cookie(response: Response) -> None:
    response.delete_cookie(ADMIN_COOKIE, path=COOKIE_PATH)
