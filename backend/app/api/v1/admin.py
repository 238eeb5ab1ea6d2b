"""Admin routes - token settings, auth logs and session statistics"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.api.deps import Principal, get_current_admin, get_token_service
from app.core.database import get_db
from app.schemas.audit import AuthLogResponse, DashboardStatsResponse
from app.schemas.response import SweepResponse
from app.schemas.token_settings import TokenSettingsPayload, TokenSettingsUpdateResponse
from app.services import audit_service as audit_events
from app.services.audit_service import AuditService
from app.services.session_store import SQLSessionStore
from app.services.token_service import TokenService, TokenSettings
from app.services.user_service import UserService
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _payload(current: TokenSettings) -> TokenSettingsPayload:
    return TokenSettingsPayload(
        access_token_expiration=current.access_token_expiration,
        refresh_token_expiration=current.refresh_token_expiration,
        rotate_on_use=current.rotate_on_use,
    )


@router.get("/token-settings", response_model=TokenSettingsPayload)
def get_token_settings(
    current_user: Principal = Depends(get_current_admin),
    token_service: TokenService = Depends(get_token_service),
):
    """Current token lifetimes and rotation policy (admin only)"""
    return _payload(token_service.get_settings())


@router.put("/token-settings", response_model=TokenSettingsUpdateResponse)
def update_token_settings(
    body: TokenSettingsPayload,
    current_user: Principal = Depends(get_current_admin),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Replace token settings (admin only)

    Applies to tokens issued from now on; already issued tokens keep
    their original expiry.
    """
    updated = token_service.update_settings(
        TokenSettings(
            access_token_expiration=body.access_token_expiration,
            refresh_token_expiration=body.refresh_token_expiration,
            rotate_on_use=body.rotate_on_use,
        )
    )
    logger.info("Token settings changed by %s", current_user.username)
    return TokenSettingsUpdateResponse(settings=_payload(updated))


@router.get("/auth-logs", response_model=List[AuthLogResponse])
def list_auth_logs(
    limit: int = 10,
    user_id: Optional[int] = None,
    current_user: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Most recent authentication events, optionally for one user (admin only)"""
    entries = AuditService(db).recent(limit=limit, user_id=user_id)
    return [
        AuthLogResponse(
            id=entry.id,
            user_id=entry.user_id,
            username=entry.user.username if entry.user else None,
            action=entry.action,
            status=entry.status,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            details=entry.details,
            created_at=entry.created_at,
        )
        for entry in entries
    ]


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    current_user: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """User, live-session and login counters for the admin dashboard"""
    audit = AuditService(db)
    return DashboardStatsResponse(
        user_count=UserService(db).count_users(),
        live_session_count=SQLSessionStore(db).count_live_sessions(),
        successful_login_count=audit.count(audit_events.LOGIN, audit_events.SUCCESS),
        failed_login_count=audit.count(audit_events.LOGIN, audit_events.FAILURE),
    )


@router.post("/sessions/sweep", response_model=SweepResponse, status_code=status.HTTP_200_OK)
def sweep_sessions(
    current_user: Principal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Delete expired, never-revoked sessions now (admin only)"""
    deleted = SQLSessionStore(db).delete_expired_sessions()
    logger.info("Manual session sweep by %s deleted %s rows", current_user.username, deleted)
    return {
        "success": True,
        "deleted_count": deleted
    }
