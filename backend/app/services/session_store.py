"""Persistent store of issued refresh tokens (sessions)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreFailureError
from app.models.session import UserSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Interface the token service relies on.

    A session is live while ``revoked_at`` is unset and ``expires_at`` lies in
    the future. Uniqueness is on the token value only; a user may hold any
    number of live sessions.
    """

    def create_session(
        self,
        *,
        user_id: int,
        refresh_token: str,
        user_agent: Optional[str],
        ip_address: Optional[str],
        expires_at: datetime,
    ) -> UserSession:
        raise NotImplementedError

    def get_live_session(self, refresh_token: str) -> Optional[UserSession]:
        raise NotImplementedError

    def get_session(self, refresh_token: str) -> Optional[UserSession]:
        """Look up a session regardless of revocation or expiry."""
        raise NotImplementedError

    def rotate_session(
        self,
        refresh_token: str,
        *,
        new_token: str,
        user_id: int,
        user_agent: Optional[str],
        ip_address: Optional[str],
        expires_at: datetime,
    ) -> bool:
        """Revoke ``refresh_token`` if still live and insert its replacement.

        Both writes happen together or not at all. Returns False when the old
        session was no longer live, in which case nothing is inserted.
        """
        raise NotImplementedError

    def revoke_session(self, refresh_token: str, replaced_by: Optional[str] = None) -> bool:
        raise NotImplementedError

    def revoke_user_sessions(self, user_id: int) -> int:
        raise NotImplementedError

    def delete_expired_sessions(self) -> int:
        """Delete expired sessions that were never revoked."""
        raise NotImplementedError

    def count_live_sessions(self) -> int:
        raise NotImplementedError


class SQLSessionStore(SessionStore):
    """SQLAlchemy-backed session store bound to one database session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _fail(self, operation: str, exc: SQLAlchemyError) -> StoreFailureError:
        self.db.rollback()
        logger.error("Session store %s failed: %s", operation, exc)
        return StoreFailureError()

    def create_session(
        self,
        *,
        user_id: int,
        refresh_token: str,
        user_agent: Optional[str],
        ip_address: Optional[str],
        expires_at: datetime,
    ) -> UserSession:
        record = UserSession(
            user_id=user_id,
            refresh_token=refresh_token,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=expires_at,
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("insert", exc) from exc
        self.db.refresh(record)
        return record

    def get_live_session(self, refresh_token: str) -> Optional[UserSession]:
        now = datetime.utcnow()
        return (
            self.db.query(UserSession)
            .filter(
                UserSession.refresh_token == refresh_token,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > now,
            )
            .first()
        )

    def get_session(self, refresh_token: str) -> Optional[UserSession]:
        return self.db.query(UserSession).filter(UserSession.refresh_token == refresh_token).first()

    def rotate_session(
        self,
        refresh_token: str,
        *,
        new_token: str,
        user_id: int,
        user_agent: Optional[str],
        ip_address: Optional[str],
        expires_at: datetime,
    ) -> bool:
        now = datetime.utcnow()
        try:
            # Conditional update: of two concurrent rotations only one sees the row live.
            claimed = (
                self.db.query(UserSession)
                .filter(
                    UserSession.refresh_token == refresh_token,
                    UserSession.revoked_at.is_(None),
                    UserSession.expires_at > now,
                )
                .update(
                    {UserSession.revoked_at: now, UserSession.replaced_by_token: new_token},
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                self.db.rollback()
                return False

            self.db.add(
                UserSession(
                    user_id=user_id,
                    refresh_token=new_token,
                    user_agent=user_agent,
                    ip_address=ip_address,
                    expires_at=expires_at,
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("rotate", exc) from exc
        return True

    def revoke_session(self, refresh_token: str, replaced_by: Optional[str] = None) -> bool:
        values = {UserSession.revoked_at: datetime.utcnow()}
        if replaced_by is not None:
            values[UserSession.replaced_by_token] = replaced_by
        try:
            revoked = (
                self.db.query(UserSession)
                .filter(UserSession.refresh_token == refresh_token, UserSession.revoked_at.is_(None))
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("revoke", exc) from exc
        return revoked > 0

    def revoke_user_sessions(self, user_id: int) -> int:
        try:
            revoked = (
                self.db.query(UserSession)
                .filter(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
                .update({UserSession.revoked_at: datetime.utcnow()}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("revoke_all", exc) from exc
        return revoked

    def delete_expired_sessions(self) -> int:
        try:
            deleted = (
                self.db.query(UserSession)
                .filter(UserSession.revoked_at.is_(None), UserSession.expires_at <= datetime.utcnow())
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("sweep", exc) from exc
        return deleted

    def count_live_sessions(self) -> int:
        return (
            self.db.query(UserSession)
            .filter(UserSession.revoked_at.is_(None), UserSession.expires_at > datetime.utcnow())
            .count()
        )
