import pytest

from app.schemas.user import UserRole
from app.services.user_service import UserService


def _login(client, username, password="Password1"):
    response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def accounts(db):
    users = UserService(db)
    users.create_user(username="mod", email="mod@example.com", password="Password1", role=UserRole.MODERATOR)
    alice = users.create_user(username="alice", email="alice@example.com", password="Password1")
    bob = users.create_user(username="bob", email="bob@example.com", password="Password1")
    return {"alice": alice.id, "bob": bob.id}


def test_staff_can_page_and_search_users(client, accounts):
    moderator = _login(client, "mod")

    page = client.get("/api/v1/users/", params={"limit": 2, "offset": 0}, headers=_bearer(moderator))
    assert page.status_code == 200
    body = page.json()
    assert len(body["users"]) == 2
    assert body["meta"] == {"total": 4, "limit": 2, "offset": 0, "has_more": True}

    found = client.get("/api/v1/users/", params={"search": "ali"}, headers=_bearer(moderator))
    assert [user["username"] for user in found.json()["users"]] == ["alice"]
    assert found.json()["meta"]["total"] == 1


def test_regular_users_cannot_list_users(client, accounts):
    alice = _login(client, "alice")
    response = client.get("/api/v1/users/", headers=_bearer(alice))
    assert response.status_code == 403


def test_user_lookup_is_limited_to_self_and_staff(client, accounts):
    alice = _login(client, "alice")
    moderator = _login(client, "mod")

    assert client.get(f"/api/v1/users/{accounts['alice']}", headers=_bearer(alice)).status_code == 200
    assert client.get(f"/api/v1/users/{accounts['bob']}", headers=_bearer(alice)).status_code == 403
    assert client.get(f"/api/v1/users/{accounts['bob']}", headers=_bearer(moderator)).status_code == 200
    assert client.get("/api/v1/users/9999", headers=_bearer(moderator)).status_code == 404


def test_users_update_own_details_but_not_role(client, accounts):
    alice = _login(client, "alice")
    url = f"/api/v1/users/{accounts['alice']}"

    updated = client.patch(url, json={"email": "Alice.New@Example.com"}, headers=_bearer(alice))
    assert updated.status_code == 200
    assert updated.json()["email"] == "alice.new@example.com"

    escalate = client.patch(url, json={"role": "admin"}, headers=_bearer(alice))
    assert escalate.status_code == 403
    assert escalate.json()["error"] == "Cannot update role or status"

    other = client.patch(f"/api/v1/users/{accounts['bob']}", json={"email": "x@example.com"}, headers=_bearer(alice))
    assert other.status_code == 403

    empty = client.patch(url, json={}, headers=_bearer(alice))
    assert empty.status_code == 422

    taken = client.patch(url, json={"email": "bob@example.com"}, headers=_bearer(alice))
    assert taken.status_code == 409


def test_password_change_applies_to_next_login(client, accounts):
    alice = _login(client, "alice")
    response = client.patch(
        f"/api/v1/users/{accounts['alice']}",
        json={"password": "NewPassword2"},
        headers=_bearer(alice),
    )
    assert response.status_code == 200

    old = client.post("/api/v1/auth/login", json={"username": "alice", "password": "Password1"})
    assert old.status_code == 401
    _login(client, "alice", "NewPassword2")


def test_moderators_cannot_change_status(client, accounts):
    moderator = _login(client, "mod")
    response = client.patch(
        f"/api/v1/users/{accounts['alice']}",
        json={"status": "locked"},
        headers=_bearer(moderator),
    )
    assert response.status_code == 403


def test_admin_lock_revokes_sessions_and_blocks_login(client, accounts, admin_headers):
    alice = _login(client, "alice")

    locked = client.patch(
        f"/api/v1/users/{accounts['alice']}",
        json={"status": "locked"},
        headers=admin_headers,
    )
    assert locked.status_code == 200
    assert locked.json()["status"] == "locked"

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": alice["refresh_token"]})
    assert refreshed.status_code == 401

    login = client.post("/api/v1/auth/login", json={"username": "alice", "password": "Password1"})
    assert login.status_code == 403
    assert login.json()["error"] == "Your account is locked"

    promoted = client.patch(
        f"/api/v1/users/{accounts['bob']}",
        json={"role": "moderator"},
        headers=admin_headers,
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "moderator"
