"""Staff endpoints: authentication and application review."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from portal.core.cookies import ADMIN_COOKIE, clear_admin_cookie, set_admin_cookie
from portal.core.deps import get_client_ip, get_current_admin, get_db, require_admin_roles
from portal.core.rate_limit import AUTH_LIMIT, limiter
from portal.db.enums import ROLES_CAN_VIEW_AUDIT
from portal.db.models import AdminUser
from portal.routers.applications import to_read
from portal.schemas.admin import AdminLoginRequest, AdminLoginResponse, AdminUserRead
from portal.schemas.application import (
    AdminStatusResponse,
    AdminStatusUpdate,
    ApplicationRead,
    ChainVerificationRead,
    StatusEventRead,
)
from portal.services import admin_auth_service, application_service, audit_service

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Auth
# =============================================================================


@router.post("/auth/login", response_model=AdminLoginResponse)
@limiter.limit(AUTH_LIMIT)
def admin_login(
    request: Request,
    response: Response,
    body: AdminLoginRequest,
    db: Session = Depends(get_db),
):
    result = admin_auth_service.login(
        db,
        body.email,
        body.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    set_admin_cookie(response, result.token)
    return AdminLoginResponse(
        user=AdminUserRead.model_validate(result.user),
        expires_at=result.expires_at,
    )


@router.post("/auth/logout")
def admin_logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """Idempotent: succeeds with or without a live session."""
    admin_auth_service.logout(db, request.cookies.get(ADMIN_COOKIE))
    clear_admin_cookie(response)
    return {"success": True}


@router.get("/auth/me", response_model=AdminUserRead)
def admin_me(admin: AdminUser = Depends(get_current_admin)):
    return admin


# =============================================================================
# Applications
# =============================================================================


@router.get("/applications/{application_id}", response_model=ApplicationRead)
def admin_get_application(
    application_id: UUID,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return to_read(db, application_service.get_application(db, application_id))


@router.post("/applications/{application_id}/status", response_model=AdminStatusResponse)
def admin_set_status(
    application_id: UUID,
    body: AdminStatusUpdate,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    application, previous_status = application_service.admin_set_status(
        db, application_id, body.status, admin, remarks=body.remarks
    )
    return AdminStatusResponse(
        application_id=application.id,
        previous_status=previous_status,
        status=application.status,
    )


@router.get("/applications/{application_id}/events", response_model=list[StatusEventRead])
def admin_get_events(
    application_id: UUID,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return application_service.list_events(db, application_id)


@router.get("/applications/{application_id}/audit", response_model=ChainVerificationRead)
def admin_verify_audit(
    application_id: UUID,
    admin: AdminUser = Depends(require_admin_roles(ROLES_CAN_VIEW_AUDIT)),
    db: Session = Depends(get_db),
):
    """Verify the application's status hash chain."""
    application_service.get_application(db, application_id)
    result = audit_service.verify_status_chain(db, application_id)
    return ChainVerificationRead(
        application_id=result.application_id,
        valid=result.valid,
        events_checked=result.events_checked,
        errors=result.errors,
    )
