"""API dependencies - authentication gate, role checks and service wiring"""

from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import TokenInvalid
from app.schemas.user import UserRole
from app.services.audit_service import AuditService
from app.services.auth_service import AuthService
from app.services.rate_limiter import LoginRateLimiter
from app.services.session_store import SQLSessionStore
from app.services.token_service import TokenService
from app.services.user_service import UserService


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a verified access token."""
    user_id: int
    username: str
    email: str
    role: str


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of an ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate(headers: Mapping[str, str], token_service: TokenService) -> Principal:
    """
    Resolve the principal of a request from its headers

    Uses stateless verification only; the session store is not consulted.

    Raises:
        AuthenticationError: Missing, invalid or expired token
    """
    token = extract_bearer_token(headers.get("authorization") or headers.get("Authorization"))
    if token is None:
        raise AuthenticationError("No authentication token provided")

    verification = token_service.verify_access_token(token)
    if isinstance(verification, TokenInvalid):
        raise AuthenticationError("Invalid or expired token")

    claims = verification.claims
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")
    return Principal(
        user_id=user_id,
        username=claims.get("username", ""),
        email=claims.get("email", ""),
        role=claims.get("role", ""),
    )


def authorize(principal: Optional[Principal], allowed_roles: Iterable[str] = ()) -> None:
    """
    Role gate; an empty role set admits any authenticated principal

    Raises:
        AuthenticationError: No principal (gate used before authentication)
        AuthorizationError: Principal's role is not allowed
    """
    if principal is None:
        raise AuthenticationError("Authentication required")
    roles = {role.value if isinstance(role, UserRole) else role for role in allowed_roles}
    if roles and principal.role not in roles:
        raise AuthorizationError("Insufficient permissions")


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_login_rate_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_rate_limiter


def get_auth_service(
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
    rate_limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
) -> AuthService:
    return AuthService(
        tokens=token_service,
        sessions=SQLSessionStore(db),
        users=UserService(db),
        audit=AuditService(db),
        rate_limiter=rate_limiter,
    )


async def get_current_principal(
    request: Request,
    token_service: TokenService = Depends(get_token_service),
) -> Principal:
    """
    Get the authenticated principal and attach it to ``request.state``

    Raises:
        AuthenticationError: If the token is missing or invalid
    """
    principal = authenticate(request.headers, token_service)
    request.state.principal = principal
    return principal


def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """Dependency admitting only principals holding one of ``roles``."""

    async def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        authorize(principal, roles)
        return principal

    return _checker


get_current_admin = require_roles(UserRole.ADMIN)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def client_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")
