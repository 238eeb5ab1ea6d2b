"""User and token schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """User role enumeration"""
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class UserStatus(str, Enum):
    """Account status enumeration"""
    ACTIVE = "active"
    PENDING = "pending"
    LOCKED = "locked"


class UserLogin(BaseModel):
    """User login schema"""
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class UserRegister(BaseModel):
    """Self-service registration schema; role is always ``user``"""
    username: str = Field(..., min_length=3, max_length=50, pattern=r'^[a-zA-Z0-9_.-]+$')
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('username')
    @classmethod
    def normalize_username(cls, v):
        return v.strip()

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    username: str
    email: str
    role: str
    status: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Partial account update; role and status are admin-only"""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v


class UserListMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class UserListResponse(BaseModel):
    """One page of users"""
    users: List[UserResponse]
    meta: UserListMeta


class RefreshTokenRequest(BaseModel):
    """Refresh token exchange request"""
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Logout request"""
    refresh_token: str = Field(..., min_length=1)


class TokenPairResponse(BaseModel):
    """JWT access/refresh pair"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenPairResponse):
    """Tokens plus the authenticated user"""
    user: UserResponse
