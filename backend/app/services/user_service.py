"""User service - lookups, account creation and account management"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime
from app.models.user import User
from app.schemas.user import UserRole, UserStatus
from app.core.security import get_password_hash
from app.core.exceptions import ConflictError, StoreFailureError
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user records, bound to one database session"""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username"""
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        return self.db.query(User).filter(User.email == email.lower()).first()

    def update_last_login(self, user_id: int) -> None:
        self.db.query(User).filter(User.id == user_id).update(
            {User.last_login: datetime.utcnow()}, synchronize_session=False
        )
        self.db.commit()

    def create_user(
        self,
        *,
        username: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        status: UserStatus = UserStatus.ACTIVE,
        commit: bool = True,
    ) -> User:
        """
        Create new user

        Args:
            username: Unique username
            email: Unique email
            password: Plain text password, stored hashed
            role: Account role
            status: Account status
            commit: False only flushes, leaving the commit to the caller

        Returns:
            Created user

        Raises:
            ConflictError: Username or email already taken
        """
        if self.get_user_by_username(username):
            raise ConflictError("Username already exists", field="username")
        if self.get_user_by_email(email):
            raise ConflictError("Email already exists", field="email")

        user = User(
            username=username,
            email=email.lower(),
            password_hash=get_password_hash(password),
            role=role.value,
            status=status.value,
        )

        try:
            self.db.add(user)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration.
            self.db.rollback()
            raise ConflictError("Username or email already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to create user %s: %s", username, exc)
            raise StoreFailureError() from exc
        self.db.refresh(user)

        logger.info(f"Created user: {user.username} (role: {user.role})")
        return user

    def count_users(self) -> int:
        return self.db.query(User).count()

    def list_users(self, limit: int = 10, offset: int = 0, search: Optional[str] = None) -> Tuple[List[User], int]:
        """
        Page through users, newest first

        Args:
            limit: Page size (clamped to 1..100)
            offset: Rows to skip
            search: Case-insensitive username substring

        Returns:
            The page and the total number of matching users
        """
        query = self.db.query(User)
        if search:
            query = query.filter(User.username.ilike(f"%{search}%"))
        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset(max(0, offset))
            .limit(max(1, min(limit, 100)))
            .all()
        )
        return users, total

    def update_user(
        self,
        user: User,
        *,
        email: Optional[str] = None,
        password: Optional[str] = None,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
    ) -> User:
        """
        Apply the given changes to ``user``; None leaves a field untouched

        Raises:
            ConflictError: Email belongs to another account
        """
        if email is not None and email.lower() != user.email:
            if self.get_user_by_email(email):
                raise ConflictError("Email already exists", field="email")
            user.email = email.lower()
        if password is not None:
            user.password_hash = get_password_hash(password)
        if role is not None:
            user.role = role.value
        if status is not None:
            user.status = status.value

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("Email already exists", field="email") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to update user %s: %s", user.id, exc)
            raise StoreFailureError() from exc
        self.db.refresh(user)
        return user
