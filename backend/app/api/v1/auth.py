"""Authentication routes"""

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from app.api.deps import (
    Principal,
    client_ip,
    client_user_agent,
    get_auth_service,
    get_current_principal,
)
from app.core.database import get_db
from app.core.exceptions import ResourceNotFoundError
from app.schemas.response import ErrorResponse, SessionActionResponse
from app.schemas.user import (
    AuthResponse,
    LogoutRequest,
    RefreshTokenRequest,
    TokenPairResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from app.services.auth_service import AuthResult, AuthService
from app.services.user_service import UserService

router = APIRouter()


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        token_type="bearer",
        expires_in=result.expires_in,
        user=UserResponse.model_validate(result.user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    candidate: UserRegister,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new account and return its first token pair

    Args:
        candidate: Username, email and password

    Returns:
        Tokens and the created user
    """
    result = auth_service.register(candidate, client_user_agent(request), client_ip(request))
    return _auth_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def login(
    credentials: UserLogin,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint - authenticate user and return JWT tokens

    Args:
        credentials: Username and password

    Returns:
        Tokens and user info
    """
    result = auth_service.login(
        credentials.username,
        credentials.password,
        client_user_agent(request),
        client_ip(request),
    )
    return _auth_response(result)


@router.post("/refresh", response_model=TokenPairResponse, responses={401: {"model": ErrorResponse}})
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Exchange a refresh token for a new access token (and a rotated refresh token)
    """
    pair = auth_service.refresh(req.refresh_token, client_user_agent(request), client_ip(request))
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type="bearer",
        expires_in=pair.expires_in,
    )


@router.post("/logout", response_model=SessionActionResponse, status_code=status.HTTP_200_OK)
def logout(
    body: LogoutRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Logout endpoint - revoke the presented refresh token
    """
    auth_service.logout(body.refresh_token, client_user_agent(request), client_ip(request))
    return {
        "success": True,
        "message": "Logged out successfully"
    }


@router.post("/revoke-all-sessions", response_model=SessionActionResponse, status_code=status.HTTP_200_OK)
def revoke_all_sessions(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Log out everywhere - revoke every refresh token of the current user
    """
    revoked = auth_service.revoke_all_sessions(
        principal.user_id, client_user_agent(request), client_ip(request)
    )
    return {
        "success": True,
        "message": "All sessions revoked successfully",
        "revoked_count": revoked
    }


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """
    Get current user information
    """
    user = UserService(db).get_user_by_id(principal.user_id)
    if user is None:
        raise ResourceNotFoundError("User")
    return UserResponse.model_validate(user)
