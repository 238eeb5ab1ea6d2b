"""Database models"""

from app.models.user import User
from app.models.session import UserSession
from app.models.audit import AuthLog

__all__ = ["User", "UserSession", "AuthLog"]
