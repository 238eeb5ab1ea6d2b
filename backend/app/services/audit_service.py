"""Audit log sink for authentication events."""

from __future__ import annotations

import logging
from typing import List, Optional

from prometheus_client import Counter
from sqlalchemy.orm import Session

from app.models.audit import AuthLog

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "sessionguard_auth_events_total",
    "Authentication events by action and outcome",
    ["action", "status"],
)

REGISTER = "register"
LOGIN = "login"
TOKEN_REFRESH = "token_refresh"
LOGOUT = "logout"
REVOKE_ALL_SESSIONS = "revoke_all_sessions"

SUCCESS = "success"
FAILURE = "failure"


class AuditService:
    """Append-only authentication log.

    Recording is best-effort: a failed write is logged and rolled back but
    never fails the request that triggered it.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        *,
        user_id: Optional[int],
        action: str,
        status: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[str] = None,
    ) -> Optional[AuthLog]:
        AUTH_EVENTS.labels(action, status).inc()
        entry = AuthLog(
            user_id=user_id,
            action=action,
            status=status,
            ip_address=ip_address or "Unknown",
            user_agent=user_agent or "Unknown",
            details=details,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except Exception:
            logger.exception("Failed to write auth log entry action=%s status=%s", action, status)
            self.db.rollback()
            return None
        return entry

    def recent(self, limit: int = 10, user_id: Optional[int] = None) -> List[AuthLog]:
        query = self.db.query(AuthLog)
        if user_id is not None:
            query = query.filter(AuthLog.user_id == user_id)
        return (
            query.order_by(AuthLog.created_at.desc(), AuthLog.id.desc())
            .limit(max(1, min(limit, 500)))
            .all()
        )

    def count(self, action: str, status: str) -> int:
        return self.db.query(AuthLog).filter(AuthLog.action == action, AuthLog.status == status).count()
