"""Response envelopes for session operations, errors and health"""

from pydantic import BaseModel
from typing import Optional, Any, Dict


class SessionActionResponse(BaseModel):
    """Outcome of a logout or revoke-all request"""
    success: bool = True
    message: str
    revoked_count: Optional[int] = None


class SweepResponse(BaseModel):
    """Outcome of an expired-session sweep"""
    success: bool = True
    deleted_count: int


class ErrorResponse(BaseModel):
    """Body rendered for every API error"""
    success: bool = False
    error: str
    details: Optional[Any] = None
    path: Optional[str] = None
    timestamp: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    readiness: Dict[str, Any] = {}
