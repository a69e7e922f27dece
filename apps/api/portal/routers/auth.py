"""Citizen identity endpoints (register, login variants, link, logout)."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from portal.core.cookies import (
    GUEST_CITIZEN,
    SESSION_COOKIE,
    clear_citizen_cookies,
    set_citizen_cookie,
    set_session_cookie,
)
from portal.core.deps import (
    get_citizen_session,
    get_db,
    get_optional_citizen_session,
)
from portal.core.rate_limit import AUTH_LIMIT, limiter
from portal.db.models import CitizenSession
from portal.schemas.auth import (
    AuthResponse,
    AuthSessionRequest,
    AuthUserRead,
    CitizenRead,
    LinkSessionRequest,
    RegisterRequest,
    SessionIdRead,
)
from portal.services import identity_service, session_service
from portal.services.identity_service import IdentityResult
from portal.utils.normalization import mask_phone

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue(response: Response, result: IdentityResult) -> AuthResponse:
    """Write the bearer cookies for an identity result."""
    if result.session is not None:
        set_session_cookie(response, str(result.session.id))
        if result.citizen is not None:
            set_citizen_cookie(response, str(result.citizen.id))
    return AuthResponse(
        session_id=result.session.id if result.session else None,
        citizen_id=result.citizen_id,
        is_new_user=result.is_new_user,
    )


@router.post("/register", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    presented: CitizenSession | None = Depends(get_optional_citizen_session),
    db: Session = Depends(get_db),
):
    """
    Register with a verified phone credential.

    An existing citizen with the same phone is logged in instead.
    """
    result = identity_service.register_or_login(
        db,
        phone=body.phone,
        identity_document_id=body.identity_document_id,
        name=body.name,
        name_hi=body.name_hi,
        access_token=body.access_token,
        presented=presented,
        device_id=body.device_id,
    )
    return _issue(response, result)


@router.post("/session", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
def auth_session(
    request: Request,
    response: Response,
    body: AuthSessionRequest,
    presented: CitizenSession | None = Depends(get_optional_citizen_session),
    db: Session = Depends(get_db),
):
    """Guest, credential login, or demo login."""
    if body.mode == "guest":
        result = identity_service.guest_session(db, device_id=body.device_id)
        auth = _issue(response, result)
        set_citizen_cookie(response, GUEST_CITIZEN)
        return auth

    if body.mode == "login":
        result = identity_service.login(
            db, access_token=body.access_token, presented=presented, device_id=body.device_id
        )
    else:
        result = identity_service.demo_login(
            db, phone=body.phone, presented=presented, device_id=body.device_id
        )
    return _issue(response, result)


@router.post("/link-session", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
def link_session(
    request: Request,
    response: Response,
    body: LinkSessionRequest,
    db: Session = Depends(get_db),
):
    """Bind a verified identity to the presented anonymous session."""
    result = identity_service.link_session(
        db,
        session_id=request.cookies.get(SESSION_COOKIE),
        access_token=body.access_token,
    )
    if result.citizen is not None:
        set_citizen_cookie(response, str(result.citizen.id))
    return AuthResponse(
        session_id=result.session.id if result.session else None,
        citizen_id=result.citizen_id,
    )


@router.get("/user", response_model=AuthUserRead)
def current_user(
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """Current citizen principal."""
    citizen = identity_service.get_citizen(db, session.citizen_id)
    citizen_read = None
    if citizen is not None:
        citizen_read = CitizenRead.model_validate(citizen)
        citizen_read.phone_masked = mask_phone(citizen.phone)
    return AuthUserRead(session_id=session.id, language=session.language, citizen=citizen_read)


@router.get("/check-session", response_model=SessionIdRead)
def check_session(session: CitizenSession | None = Depends(get_optional_citizen_session)):
    return SessionIdRead(session_id=session.id if session else None)


@router.post("/logout")
def logout(
    response: Response,
    session: CitizenSession | None = Depends(get_optional_citizen_session),
    db: Session = Depends(get_db),
):
    """Deactivate the session and drop the citizen cookies; idempotent."""
    if session is not None:
        session_service.deactivate_session(db, session)
    clear_citizen_cookies(response)
    return {"success": True}
