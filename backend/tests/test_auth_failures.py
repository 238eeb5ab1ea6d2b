import pytest
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreFailureError
from app.models.audit import AuthLog
from app.models.user import User
from app.services.session_store import SQLSessionStore

ALICE = {"username": "alice", "email": "alice@example.com", "password": "Password1"}


def _refuse_session(self, **kwargs):
    raise StoreFailureError()


@pytest.fixture
def session_store_down(monkeypatch):
    monkeypatch.setattr(SQLSessionStore, "create_session", _refuse_session)


@pytest.fixture
def audit_store_down():
    def reject_auth_logs(session, flush_context, instances):
        if any(isinstance(obj, AuthLog) for obj in session.new):
            raise SQLAlchemyError("auth_logs unavailable")

    event.listen(Session, "before_flush", reject_auth_logs)
    yield
    event.remove(Session, "before_flush", reject_auth_logs)


def test_register_leaves_no_account_when_session_cannot_be_stored(client, db, session_store_down, monkeypatch):
    response = client.post("/api/v1/auth/register", json=ALICE)

    assert response.status_code == 503
    assert "access_token" not in response.json()
    assert db.query(User).filter(User.username == "alice").first() is None
    failure = db.query(AuthLog).filter(AuthLog.action == "register").one()
    assert failure.status == "failure"
    assert failure.user_id is None

    monkeypatch.undo()
    assert client.post("/api/v1/auth/register", json=ALICE).status_code == 201


def test_login_refused_when_session_cannot_be_stored(client, db, monkeypatch):
    assert client.post("/api/v1/auth/register", json=ALICE).status_code == 201

    monkeypatch.setattr(SQLSessionStore, "create_session", _refuse_session)
    response = client.post("/api/v1/auth/login", json={"username": "alice", "password": "Password1"})

    assert response.status_code == 503
    assert "access_token" not in response.json()
    entry = db.query(AuthLog).filter(AuthLog.action == "login").one()
    assert entry.status == "failure"
    assert entry.details == "session_persist_failed"
    assert db.query(User).filter(User.username == "alice").one().last_login is None


def test_audit_failures_do_not_fail_requests(client, db, audit_store_down):
    registered = client.post("/api/v1/auth/register", json=ALICE)
    assert registered.status_code == 201

    login = client.post("/api/v1/auth/login", json={"username": "alice", "password": "Password1"})
    assert login.status_code == 200
    assert login.json()["access_token"]

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert refreshed.status_code == 200

    assert db.query(AuthLog).count() == 0
