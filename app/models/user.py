"""ORM model for platform users (credentials and role)."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from app.models.base import Base


class Role(str, enum.Enum):
    """Roles a user can hold. Values are stored verbatim in users.role."""

    USER = "User"
    ADMIN = "Admin"


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    password_hash always holds a bcrypt hash; plain passwords are never persisted.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('User', 'Admin')", name="role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=Role.USER.value)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
