"""Authentication log response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuthLogResponse(BaseModel):
    id: int
    user_id: Optional[int]
    username: Optional[str] = None
    action: str
    status: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    details: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class DashboardStatsResponse(BaseModel):
    user_count: int
    live_session_count: int
    successful_login_count: int
    failed_login_count: int
