"""Citizen session endpoints."""

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.orm import Session

from portal.core.cookies import (
    LANGUAGE_COOKIE,
    SESSION_COOKIE,
    set_language_cookie,
    set_session_cookie,
)
from portal.core.deps import get_db
from portal.schemas.session import (
    LanguageUpdate,
    LanguageUpdated,
    SessionCheck,
    SessionCreate,
    SessionCreated,
)
from portal.services import session_service

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/create", response_model=SessionCreated)
def create_session(
    response: Response,
    body: SessionCreate | None = Body(None),
    db: Session = Depends(get_db),
):
    """Issue a new anonymous session and its bearer cookie."""
    body = body or SessionCreate()
    session = session_service.create_session(db, device_id=body.device_id, metadata=body.metadata)
    set_session_cookie(response, str(session.id))
    return SessionCreated(session_id=session.id, language=session.language)


@router.post("/language", response_model=LanguageUpdated)
def set_language(
    body: LanguageUpdate,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Record the language preference.

    Mirrored into the client-readable ``language`` cookie. Without a
    session only the cookie is set so the preference survives until one
    exists.
    """
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id and session_service.get_active_session(db, session_id) is not None:
        language = session_service.set_language(db, session_id, body.language)
    else:
        language = session_service.validate_language(body.language)
    set_language_cookie(response, language)
    return LanguageUpdated(language=language)


@router.get("/check", response_model=SessionCheck)
def check_session(request: Request):
    """Client-signal view; no store round-trip."""
    return SessionCheck(
        has_session=bool(request.cookies.get(SESSION_COOKIE)),
        language=request.cookies.get(LANGUAGE_COOKIE),
    )
