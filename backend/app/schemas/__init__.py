"""Pydantic schemas for API validation"""

from app.schemas.user import (
    UserRole,
    UserStatus,
    UserLogin,
    UserRegister,
    UserResponse,
    UserUpdate,
    UserListMeta,
    UserListResponse,
    RefreshTokenRequest,
    LogoutRequest,
    TokenPairResponse,
    AuthResponse,
)
from app.schemas.token_settings import TokenSettingsPayload, TokenSettingsUpdateResponse
from app.schemas.response import SessionActionResponse, SweepResponse, ErrorResponse, HealthResponse
from app.schemas.audit import AuthLogResponse, DashboardStatsResponse

__all__ = [
    "UserRole", "UserStatus", "UserLogin", "UserRegister", "UserResponse",
    "UserUpdate", "UserListMeta", "UserListResponse",
    "RefreshTokenRequest", "LogoutRequest", "TokenPairResponse", "AuthResponse",
    "TokenSettingsPayload", "TokenSettingsUpdateResponse",
    "AuthLogResponse", "DashboardStatsResponse",
    "SessionActionResponse", "SweepResponse", "ErrorResponse", "HealthResponse",
]
