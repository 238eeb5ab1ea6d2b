"""Access/refresh token issuance, rotation and revocation service."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Optional

from app.config import Settings
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenInvalid,
    TokenVerification,
    create_access_token,
    create_refresh_token,
    decode_token,
    token_expiry,
)
from app.models.user import User
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# 40 random bytes, hex encoded.
REFRESH_TOKEN_ID_BYTES = 40


@dataclass(frozen=True)
class TokenSettings:
    """Lifetimes in seconds and the rotation policy."""
    access_token_expiration: int
    refresh_token_expiration: int
    rotate_on_use: bool

    def __post_init__(self) -> None:
        if self.access_token_expiration <= 0 or self.refresh_token_expiration <= 0:
            raise ValueError("Token expirations must be positive")


@dataclass(frozen=True)
class TokenPair:
    user_id: int
    access_token: str
    refresh_token: str
    expires_in: int


class TokenService:
    """Issue, verify, rotate and revoke tokens.

    One instance lives for the whole process; its settings are shared by all
    requests and take effect for tokens issued after an update.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        token_settings: TokenSettings,
        revoke_on_reuse: bool = False,
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._settings = token_settings
        self._settings_lock = threading.Lock()
        self.revoke_on_reuse = revoke_on_reuse

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "TokenService":
        return cls(
            access_secret=app_settings.ACCESS_TOKEN_SECRET,
            refresh_secret=app_settings.REFRESH_TOKEN_SECRET,
            token_settings=TokenSettings(
                access_token_expiration=app_settings.ACCESS_TOKEN_EXPIRE_SECONDS,
                refresh_token_expiration=app_settings.REFRESH_TOKEN_EXPIRE_SECONDS,
                rotate_on_use=app_settings.ROTATE_REFRESH_TOKENS,
            ),
            revoke_on_reuse=app_settings.REVOKE_SESSIONS_ON_REFRESH_REUSE,
        )

    def get_settings(self) -> TokenSettings:
        with self._settings_lock:
            return self._settings

    def update_settings(self, token_settings: TokenSettings) -> TokenSettings:
        with self._settings_lock:
            self._settings = token_settings
            logger.info(
                "Token settings updated: access=%ss refresh=%ss rotate_on_use=%s",
                token_settings.access_token_expiration,
                token_settings.refresh_token_expiration,
                token_settings.rotate_on_use,
            )
            return self._settings

    def issue_access_token(self, user: User, token_settings: Optional[TokenSettings] = None) -> str:
        current = token_settings or self.get_settings()
        return create_access_token(
            {
                "sub": str(user.id),
                "username": user.username,
                "email": user.email,
                "role": user.role,
            },
            self._access_secret,
            current.access_token_expiration,
        )

    def _sign_refresh_token(self, user: User, token_settings: TokenSettings) -> str:
        return create_refresh_token(
            {"sub": str(user.id), "tid": secrets.token_hex(REFRESH_TOKEN_ID_BYTES)},
            self._refresh_secret,
            token_settings.refresh_token_expiration,
        )

    def issue_refresh_token(
        self,
        sessions: SessionStore,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        token_settings: Optional[TokenSettings] = None,
    ) -> str:
        current = token_settings or self.get_settings()
        refresh_token = self._sign_refresh_token(user, current)
        sessions.create_session(
            user_id=user.id,
            refresh_token=refresh_token,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=token_expiry(refresh_token),
        )
        return refresh_token

    def verify_access_token(self, token: str) -> TokenVerification:
        return decode_token(token, self._access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenVerification:
        """Signature and expiry only; revocation needs a session lookup."""
        verification = decode_token(token, self._refresh_secret, REFRESH_TOKEN_TYPE)
        if not isinstance(verification, TokenInvalid) and not verification.claims.get("tid"):
            return TokenInvalid("malformed")
        return verification

    def refresh(
        self,
        sessions: SessionStore,
        users,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[TokenPair]:
        """
        Exchange a refresh token for a new access token

        Args:
            sessions: Session store
            users: Collaborator exposing ``get_user_by_id``
            refresh_token: Presented refresh token
            user_agent: Client user agent for the new session
            ip_address: Client address for the new session

        Returns:
            TokenPair, or None when the token is invalid, expired, revoked,
            rotated away or owned by a missing/inactive user
        """
        verification = self.verify_refresh_token(refresh_token)
        if isinstance(verification, TokenInvalid):
            logger.info("Refresh rejected: %s", verification.reason)
            return None

        record = sessions.get_live_session(refresh_token)
        if record is None:
            self._handle_dead_token(sessions, refresh_token)
            return None

        try:
            user_id = int(verification.claims["sub"])
        except (TypeError, ValueError):
            return None
        if record.user_id != user_id:
            logger.warning("Refresh token subject %s does not match session owner %s", user_id, record.user_id)
            return None

        user = users.get_user_by_id(user_id)
        if user is None or not user.is_active:
            return None

        current = self.get_settings()
        access_token = self.issue_access_token(user, current)
        if not current.rotate_on_use:
            return TokenPair(
                user_id=user.id,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=current.access_token_expiration,
            )

        new_refresh = self._sign_refresh_token(user, current)
        rotated = sessions.rotate_session(
            refresh_token,
            new_token=new_refresh,
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=token_expiry(new_refresh),
        )
        if not rotated:
            logger.warning("Refresh token for user %s was rotated concurrently", user.id)
            return None
        return TokenPair(
            user_id=user.id,
            access_token=access_token,
            refresh_token=new_refresh,
            expires_in=current.access_token_expiration,
        )

    def _handle_dead_token(self, sessions: SessionStore, refresh_token: str) -> None:
        record = sessions.get_session(refresh_token)
        if record is None or not record.replaced_by_token:
            return
        logger.warning("Rotated-away refresh token replayed for user %s", record.user_id)
        if self.revoke_on_reuse:
            revoked = sessions.revoke_user_sessions(record.user_id)
            logger.warning("Revoked %s sessions of user %s after refresh token reuse", revoked, record.user_id)

    def revoke(self, sessions: SessionStore, refresh_token: str) -> bool:
        """Idempotent; unknown or already revoked tokens are not errors."""
        return sessions.revoke_session(refresh_token)

    def revoke_all(self, sessions: SessionStore, user_id: int) -> int:
        return sessions.revoke_user_sessions(user_id)
