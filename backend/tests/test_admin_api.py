from datetime import datetime, timedelta

from app.models.session import UserSession

ALICE = {"username": "alice", "email": "alice@example.com", "password": "Password1"}


def test_admin_routes_reject_regular_users(client):
    tokens = client.post("/api/v1/auth/register", json=ALICE).json()

    response = client.get("/api/v1/admin/token-settings", headers={"Authorization": f"Bearer {tokens['access_token']}"})

    assert response.status_code == 403
    assert response.json()["error"] == "Insufficient permissions"


def test_admin_can_read_and_update_token_settings(client, admin_headers):
    current = client.get("/api/v1/admin/token-settings", headers=admin_headers)
    assert current.status_code == 200
    assert current.json() == {
        "access_token_expiration": 1800,
        "refresh_token_expiration": 604800,
        "rotate_on_use": True,
    }

    updated = client.put(
        "/api/v1/admin/token-settings",
        headers=admin_headers,
        json={"access_token_expiration": 60, "refresh_token_expiration": 120, "rotate_on_use": False},
    )
    assert updated.status_code == 200
    assert updated.json()["settings"]["access_token_expiration"] == 60

    tokens = client.post("/api/v1/auth/register", json=ALICE).json()
    assert tokens["expires_in"] == 60

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.json()["refresh_token"] == tokens["refresh_token"]


def test_token_settings_reject_non_positive_values(client, admin_headers):
    response = client.put(
        "/api/v1/admin/token-settings",
        headers=admin_headers,
        json={"access_token_expiration": 0, "refresh_token_expiration": 120, "rotate_on_use": True},
    )
    assert response.status_code == 422


def test_dashboard_stats_and_auth_logs(client, admin_headers):
    client.post("/api/v1/auth/register", json=ALICE)
    client.post("/api/v1/auth/login", json={"username": "alice", "password": "nope-nope"})

    stats = client.get("/api/v1/admin/dashboard/stats", headers=admin_headers)
    assert stats.status_code == 200
    assert stats.json() == {
        "user_count": 2,
        "live_session_count": 2,
        "successful_login_count": 1,
        "failed_login_count": 1,
    }

    logs = client.get("/api/v1/admin/auth-logs", params={"limit": 2}, headers=admin_headers)
    assert logs.status_code == 200
    entries = logs.json()
    assert len(entries) == 2
    assert entries[0]["action"] == "login"
    assert entries[0]["status"] == "failure"
    assert entries[0]["username"] == "alice"


def test_manual_sweep(client, admin_headers, db):
    alice = client.post("/api/v1/auth/register", json=ALICE).json()["user"]
    db.add(
        UserSession(
            user_id=alice["id"],
            refresh_token="long-gone",
            expires_at=datetime.utcnow() - timedelta(minutes=5),
        )
    )
    db.commit()

    response = client.post("/api/v1/admin/sessions/sweep", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "deleted_count": 1}


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["readiness"]["database"]["ok"] is True

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "sessionguard_auth_events_total" in metrics.text
