"""Authentication workflows: register, login, refresh, logout, revoke-all."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    RateLimitExceededError,
    StoreFailureError,
)
from app.core.security import TokenValid, get_password_hash, verify_password
from app.models.user import User
from app.schemas.user import UserRegister
from app.services import audit_service as audit_events
from app.services.audit_service import AuditService
from app.services.rate_limiter import LoginRateLimiter
from app.services.session_store import SessionStore
from app.services.token_service import TokenPair, TokenService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return get_password_hash("timing-equalizer-not-a-password")


@dataclass(frozen=True)
class AuthResult:
    user: User
    access_token: str
    refresh_token: str
    expires_in: int


class AuthService:
    """Request-scoped facade over the token service and its stores."""

    def __init__(
        self,
        *,
        tokens: TokenService,
        sessions: SessionStore,
        users: UserService,
        audit: AuditService,
        rate_limiter: LoginRateLimiter,
    ) -> None:
        self.tokens = tokens
        self.sessions = sessions
        self.users = users
        self.audit = audit
        self.rate_limiter = rate_limiter

    def _issue(self, user: User, user_agent: Optional[str], ip_address: Optional[str]) -> AuthResult:
        current = self.tokens.get_settings()
        access_token = self.tokens.issue_access_token(user, current)
        refresh_token = self.tokens.issue_refresh_token(
            self.sessions, user, user_agent, ip_address, token_settings=current
        )
        return AuthResult(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=current.access_token_expiration,
        )

    def register(
        self,
        candidate: UserRegister,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Create a ``user``-role account and sign it in

        The account is committed together with its first session; if the
        session cannot be stored, no account is left behind.

        Raises:
            ConflictError: Username or email already taken
            StoreFailureError: Account or session could not be persisted
        """
        try:
            user = self.users.create_user(
                username=candidate.username,
                email=candidate.email,
                password=candidate.password,
                commit=False,
            )
            result = self._issue(user, user_agent, ip_address)
        except (ConflictError, StoreFailureError) as exc:
            self.users.db.rollback()
            self.audit.record(
                user_id=None,
                action=audit_events.REGISTER,
                status=audit_events.FAILURE,
                ip_address=ip_address,
                user_agent=user_agent,
                details=exc.message,
            )
            raise

        self.audit.record(
            user_id=user.id,
            action=audit_events.REGISTER,
            status=audit_events.SUCCESS,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return result

    def login(
        self,
        username: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Verify credentials and issue a token pair

        The attempt is counted against the client address before any
        credential check, so unknown usernames are throttled as well.

        Raises:
            RateLimitExceededError: Too many attempts from this address
            InvalidCredentialsError: Unknown user or wrong password
            AccountNotActiveError: Account is pending or locked
            StoreFailureError: Session could not be persisted
        """
        decision = self.rate_limiter.hit(ip_address or "unknown")
        if not decision.allowed:
            logger.warning("Login rate limit hit for %s", ip_address)
            raise RateLimitExceededError(retry_after=decision.retry_after)

        user = self.users.get_user_by_username(username)
        if user is None:
            verify_password(password, _dummy_password_hash())
            self._login_failed(None, "Invalid username or password", user_agent, ip_address)
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            self._login_failed(user.id, "Invalid username or password", user_agent, ip_address)
            raise InvalidCredentialsError()

        if not user.is_active:
            self._login_failed(user.id, f"account_{user.status}", user_agent, ip_address)
            raise AccountNotActiveError(user.status)

        try:
            result = self._issue(user, user_agent, ip_address)
        except StoreFailureError:
            self._login_failed(user.id, "session_persist_failed", user_agent, ip_address)
            raise

        try:
            self.users.update_last_login(user.id)
        except SQLAlchemyError as exc:
            self.users.db.rollback()
            logger.warning("Could not update last_login for user %s: %s", user.id, exc)

        self.audit.record(
            user_id=user.id,
            action=audit_events.LOGIN,
            status=audit_events.SUCCESS,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("User authenticated: %s", user.username)
        return result

    def _login_failed(
        self,
        user_id: Optional[int],
        details: str,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> None:
        self.audit.record(
            user_id=user_id,
            action=audit_events.LOGIN,
            status=audit_events.FAILURE,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details,
        )

    def refresh(
        self,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        pair = self.tokens.refresh(self.sessions, self.users, refresh_token, user_agent, ip_address)
        if pair is None:
            raise AuthenticationError("Invalid or expired refresh token")

        self.audit.record(
            user_id=pair.user_id,
            action=audit_events.TOKEN_REFRESH,
            status=audit_events.SUCCESS,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return pair

    def logout(
        self,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Revoke one refresh token; repeated or unknown tokens are fine."""
        verification = self.tokens.verify_refresh_token(refresh_token)
        self.tokens.revoke(self.sessions, refresh_token)

        if isinstance(verification, TokenValid):
            self.audit.record(
                user_id=int(verification.claims["sub"]),
                action=audit_events.LOGOUT,
                status=audit_events.SUCCESS,
                ip_address=ip_address,
                user_agent=user_agent,
            )

    def revoke_all_sessions(
        self,
        user_id: int,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        revoked = self.tokens.revoke_all(self.sessions, user_id)
        self.audit.record(
            user_id=user_id,
            action=audit_events.REVOKE_ALL_SESSIONS,
            status=audit_events.SUCCESS,
            ip_address=ip_address,
            user_agent=user_agent,
            details=f"revoked={revoked}",
        )
        logger.info("Revoked %s sessions for user %s", revoked, user_id)
        return revoked
