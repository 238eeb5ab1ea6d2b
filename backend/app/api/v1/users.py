"""User management routes"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.api.deps import Principal, get_current_principal, get_token_service, require_roles
from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.models.user import User
from app.schemas.user import (
    UserListMeta,
    UserListResponse,
    UserResponse,
    UserRole,
    UserStatus,
    UserUpdate,
)
from app.services.session_store import SQLSessionStore
from app.services.token_service import TokenService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

_STAFF_ROLES = (UserRole.ADMIN.value, UserRole.MODERATOR.value)


def _get_user_or_404(users: UserService, user_id: int) -> User:
    user = users.get_user_by_id(user_id)
    if user is None:
        raise ResourceNotFoundError("User")
    return user


@router.get("/", response_model=UserListResponse)
def list_users(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    search: Optional[str] = None,
    current_user: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.MODERATOR)),
    db: Session = Depends(get_db),
):
    """
    List users, newest first (admin and moderator only)

    Args:
        limit: Page size
        offset: Rows to skip
        search: Username substring filter

    Returns:
        One page of users plus pagination metadata
    """
    users, total = UserService(db).list_users(limit=limit, offset=offset, search=search)
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        meta=UserListMeta(total=total, limit=limit, offset=offset, has_more=offset + limit < total),
    )


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Get one user; visible to the user themselves and to staff"""
    if current_user.user_id != user_id and current_user.role not in _STAFF_ROLES:
        raise AuthorizationError("Access denied")
    return UserResponse.model_validate(_get_user_or_404(UserService(db), user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    changes: UserUpdate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Update an account

    Users may change their own email and password; only admins may change
    anyone's role or status. Moving an account out of ``active`` revokes
    all of its sessions.
    """
    is_admin = current_user.role == UserRole.ADMIN.value
    if not is_admin and current_user.user_id != user_id:
        raise AuthorizationError("Access denied")

    fields = changes.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise ValidationError("No fields to update")
    if not is_admin and ("role" in fields or "status" in fields):
        raise AuthorizationError("Cannot update role or status")

    users = UserService(db)
    user = _get_user_or_404(users, user_id)
    user = users.update_user(
        user,
        email=changes.email,
        password=changes.password,
        role=changes.role,
        status=changes.status,
    )

    if changes.status is not None and changes.status != UserStatus.ACTIVE:
        revoked = token_service.revoke_all(SQLSessionStore(db), user.id)
        logger.info("User %s set to %s by %s; revoked %s sessions", user.id, user.status, current_user.username, revoked)

    return UserResponse.model_validate(user)
