import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, SessionLocal
from app.models.session import UserSession
from app.services.session_store import SQLSessionStore
from app.services.session_sweeper import SessionSweeper
from app.services.token_service import TokenPair, TokenService, TokenSettings
from app.services.user_service import UserService


@pytest.fixture
def alice(db):
    return UserService(db).create_user(username="alice", email="alice@example.com", password="Password1")


def _create(store, user_id, token, expires_in=timedelta(hours=1)):
    return store.create_session(
        user_id=user_id,
        refresh_token=token,
        user_agent="pytest",
        ip_address="127.0.0.1",
        expires_at=datetime.utcnow() + expires_in,
    )


def _rotate(store, old, new, user_id):
    return store.rotate_session(
        old,
        new_token=new,
        user_id=user_id,
        user_agent="pytest",
        ip_address="127.0.0.1",
        expires_at=datetime.utcnow() + timedelta(hours=1),
    )


def test_second_rotation_of_same_token_fails_without_insert(db, alice):
    store = SQLSessionStore(db)
    _create(store, alice.id, "token-a")

    assert _rotate(store, "token-a", "token-b", alice.id) is True
    assert _rotate(store, "token-a", "token-c", alice.id) is False

    assert store.get_session("token-c") is None
    assert store.get_live_session("token-a") is None
    assert store.get_live_session("token-b") is not None
    assert store.get_session("token-a").replaced_by_token == "token-b"


def test_expired_session_is_not_live_and_cannot_rotate(db, alice):
    store = SQLSessionStore(db)
    _create(store, alice.id, "stale", expires_in=timedelta(seconds=-5))

    assert store.get_live_session("stale") is None
    assert _rotate(store, "stale", "fresh", alice.id) is False


def test_revoke_user_sessions_counts_only_live_rows(db, alice):
    store = SQLSessionStore(db)
    _create(store, alice.id, "one")
    _create(store, alice.id, "two")
    store.revoke_session("one")

    assert store.revoke_user_sessions(alice.id) == 1
    assert store.revoke_user_sessions(alice.id) == 0
    assert store.count_live_sessions() == 0


def test_sweep_deletes_only_expired_unrevoked_sessions(db, alice):
    store = SQLSessionStore(db)
    _create(store, alice.id, "live")
    _create(store, alice.id, "expired", expires_in=timedelta(seconds=-5))
    _create(store, alice.id, "revoked-expired", expires_in=timedelta(seconds=-5))
    store.revoke_session("revoked-expired")

    assert store.delete_expired_sessions() == 1

    remaining = {row.refresh_token for row in db.query(UserSession).all()}
    assert remaining == {"live", "revoked-expired"}


def test_sweeper_reports_deleted_rows(db, alice):
    store = SQLSessionStore(db)
    _create(store, alice.id, "expired", expires_in=timedelta(seconds=-5))

    sweeper = SessionSweeper(session_factory=SessionLocal, interval_seconds=60)
    assert sweeper.sweep_once() == 1
    assert sweeper.status()["swept_count"] == 1
    assert sweeper.status()["running"] is False


def test_concurrent_refresh_against_database_has_one_winner(tmp_path):
    # File-backed so every thread gets its own connection.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rotation.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    ThreadSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    service = TokenService(
        access_secret="race-access-secret",
        refresh_secret="race-refresh-secret",
        token_settings=TokenSettings(access_token_expiration=300, refresh_token_expiration=600, rotate_on_use=True),
    )

    setup = ThreadSession()
    try:
        user = UserService(setup).create_user(username="racer", email="racer@example.com", password="Password1")
        user_id = user.id
        token = service.issue_refresh_token(SQLSessionStore(setup), user)
    finally:
        setup.close()

    workers = 6
    barrier = threading.Barrier(workers)
    results = []
    results_lock = threading.Lock()

    def attempt():
        db = ThreadSession()
        try:
            barrier.wait()
            outcome = service.refresh(SQLSessionStore(db), UserService(db), token)
        except Exception as exc:
            outcome = exc
        finally:
            db.close()
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    check = ThreadSession()
    try:
        assert len(results) == workers
        assert [r for r in results if isinstance(r, Exception)] == []
        winners = [r for r in results if isinstance(r, TokenPair)]
        assert len(winners) == 1

        rows = check.query(UserSession).filter(UserSession.user_id == user_id).all()
        live = [row.refresh_token for row in rows if row.revoked_at is None]
        assert live == [winners[0].refresh_token]
        assert len(rows) == 2
    finally:
        check.close()
        engine.dispose()
