"""
Onboarding gate.

Derives which onboarding step a client still owes from four signals the
client presents on every request (session, language, citizen link, consent)
and routes it to the first unmet step. Steps are ordered; a client that has
skipped ahead is still routed to the earliest missing one.

``derive_state`` and ``evaluate`` are pure. ``OnboardingGateMiddleware``
applies the decision to page routes and only adds the ``x-session-missing``
diagnostic header on passthrough responses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from portal.core.cookies import (
    CITIZEN_COOKIE,
    CONSENT_COOKIE,
    LANGUAGE_COOKIE,
    SESSION_COOKIE,
)


SESSION_MISSING_HEADER = "x-session-missing"


class OnboardingState(str, Enum):
    """First outstanding onboarding step (ADMITTED when none)."""

    NEEDS_SESSION = "needs_session"
    NEEDS_LANGUAGE = "needs_language"
    NEEDS_LOGIN = "needs_login"
    NEEDS_CONSENT = "needs_consent"
    ADMITTED = "admitted"


REDIRECT_TARGETS: dict[OnboardingState, str] = {
    OnboardingState.NEEDS_SESSION: "/splash",
    OnboardingState.NEEDS_LANGUAGE: "/language",
    OnboardingState.NEEDS_LOGIN: "/login",
    OnboardingState.NEEDS_CONSENT: "/consent-gate",
}

HOME_PATH = "/"

PUBLIC_PREFIXES: tuple[str, ...] = (
    "/session",
    "/auth",
    "/consent",
    "/admin",
    "/applications",
    "/user",
    "/onboarding",
    "/services",
    "/ws",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/static",
    "/icons",
    "/_next",
    "/favicon.ico",
    "/manifest.json",
    "/splash",
    "/language",
    "/login",
    "/consent-gate",
)

PROTECTED_PREFIXES: tuple[str, ...] = (
    "/voice",
    "/apply",
    "/my-applications",
    "/grievance",
    "/status",
)


@dataclass(frozen=True)
class OnboardingSignals:
    """Client-presented onboarding markers."""

    has_session: bool
    has_language: bool
    has_citizen_link: bool
    has_consent: bool

    @classmethod
    def from_cookies(cls, cookies: Mapping[str, str]) -> "OnboardingSignals":
        return cls(
            has_session=bool(cookies.get(SESSION_COOKIE)),
            has_language=bool(cookies.get(LANGUAGE_COOKIE)),
            has_citizen_link=bool(cookies.get(CITIZEN_COOKIE)),
            has_consent=bool(cookies.get(CONSENT_COOKIE)),
        )


@dataclass(frozen=True)
class GateDecision:
    """Outcome of evaluating one request."""

    state: OnboardingState
    redirect_to: str | None = None
    session_missing: bool = False


def derive_state(signals: OnboardingSignals) -> OnboardingState:
    """Total function of the four signals; the earliest unmet step wins."""
    if not signals.has_session:
        return OnboardingState.NEEDS_SESSION
    if not signals.has_language:
        return OnboardingState.NEEDS_LANGUAGE
    if not signals.has_citizen_link:
        return OnboardingState.NEEDS_LOGIN
    if not signals.has_consent:
        return OnboardingState.NEEDS_CONSENT
    return OnboardingState.ADMITTED


def redirect_for(state: OnboardingState) -> str | None:
    """Page a client in ``state`` should be sent to (None once admitted)."""
    return REDIRECT_TARGETS.get(state)


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_public_path(path: str) -> bool:
    return any(_matches(path, prefix) for prefix in PUBLIC_PREFIXES)


def is_protected_path(path: str) -> bool:
    return path == HOME_PATH or any(_matches(path, prefix) for prefix in PROTECTED_PREFIXES)


def evaluate(path: str, signals: OnboardingSignals) -> GateDecision:
    """
    Decide what the gate does with a request.

    - Public paths bypass the gate entirely.
    - ``/`` is routed through the full onboarding state.
    - Other protected paths need a session and a citizen link.
    - Everything else passes, flagged when no session exists.
    """
    state = derive_state(signals)

    if is_public_path(path):
        return GateDecision(state=state)

    missing = not signals.has_session

    if path == HOME_PATH:
        return GateDecision(state=state, redirect_to=redirect_for(state), session_missing=missing)

    if is_protected_path(path):
        if not signals.has_session:
            target = REDIRECT_TARGETS[OnboardingState.NEEDS_SESSION]
            return GateDecision(state=state, redirect_to=target, session_missing=True)
        if not signals.has_citizen_link:
            target = REDIRECT_TARGETS[OnboardingState.NEEDS_LOGIN]
            return GateDecision(state=state, redirect_to=target)

    return GateDecision(state=state, session_missing=missing)


class OnboardingGateMiddleware(BaseHTTPMiddleware):
    """Apply ``evaluate`` to every HTTP request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        decision = evaluate(request.url.path, OnboardingSignals.from_cookies(request.cookies))

        if decision.redirect_to:
            response: Response = RedirectResponse(url=decision.redirect_to, status_code=307)
        else:
            response = await call_next(request)

        if decision.session_missing:
            response.headers[SESSION_MISSING_HEADER] = "true"
        return response
