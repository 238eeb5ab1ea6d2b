"""Background worker deleting expired, never-revoked sessions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from prometheus_client import Gauge
from sqlalchemy.orm import Session

from app.config import settings
from app.core.database import SessionLocal
from app.services.session_store import SQLSessionStore

logger = logging.getLogger(__name__)

LIVE_SESSIONS_GAUGE = Gauge("sessionguard_live_sessions", "Sessions that are neither revoked nor expired")
SWEPT_SESSIONS = Gauge("sessionguard_last_sweep_deleted", "Rows deleted by the most recent session sweep")


class SessionSweeper:
    """Periodic sweep bounding the sessions table."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._swept_count: int = 0
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        return max(1.0, self._interval or settings.SESSION_SWEEP_INTERVAL_SECONDS)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.info("Session sweeper started (interval %.0fs)", self.interval)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Session sweeper stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "swept_count": self._swept_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sweep_once()
            except Exception as exc:
                logger.exception("Session sweep failed: %s", exc)
            self._heartbeat = time.time()
            self._stop_event.wait(self.interval)

    def sweep_once(self) -> int:
        db = self._session_factory()
        try:
            store = SQLSessionStore(db)
            deleted = store.delete_expired_sessions()
            LIVE_SESSIONS_GAUGE.set(store.count_live_sessions())
        finally:
            db.close()

        SWEPT_SESSIONS.set(deleted)
        with self._lock:
            self._swept_count += deleted
        if deleted:
            logger.info("Deleted %s expired sessions", deleted)
        return deleted


session_sweeper = SessionSweeper()
