import pytest

from app.api.deps import Principal, authenticate, authorize, extract_bearer_token
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.schemas.user import UserRole
from app.services.token_service import TokenService, TokenSettings
from fakes import FakeUsers, InMemorySessionStore


@pytest.fixture
def token_service():
    return TokenService(
        access_secret="deps-access-secret",
        refresh_secret="deps-refresh-secret",
        token_settings=TokenSettings(access_token_expiration=300, refresh_token_expiration=600, rotate_on_use=True),
    )


def _principal(role):
    return Principal(user_id=1, username="someone", email="someone@example.com", role=role)


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer abc") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer ") is None
    assert extract_bearer_token(None) is None


def test_authenticate_resolves_principal(token_service):
    user = FakeUsers().add(5, "carol", role="moderator")
    token = token_service.issue_access_token(user)

    principal = authenticate({"authorization": f"Bearer {token}"}, token_service)

    assert principal == Principal(user_id=5, username="carol", email="carol@example.com", role="moderator")


def test_authenticate_without_token():
    with pytest.raises(AuthenticationError) as exc:
        authenticate({}, None)
    assert exc.value.message == "No authentication token provided"


def test_authenticate_rejects_refresh_token(token_service):
    user = FakeUsers().add(5, "carol")
    refresh = token_service.issue_refresh_token(InMemorySessionStore(), user)

    with pytest.raises(AuthenticationError) as exc:
        authenticate({"Authorization": f"Bearer {refresh}"}, token_service)
    assert exc.value.status_code == 401


def test_role_gate():
    allowed = {UserRole.ADMIN, UserRole.MODERATOR}

    with pytest.raises(AuthorizationError):
        authorize(_principal("user"), allowed)
    authorize(_principal("moderator"), allowed)
    authorize(_principal("user"), ())


def test_role_gate_requires_principal():
    with pytest.raises(AuthenticationError):
        authorize(None, {UserRole.ADMIN})
