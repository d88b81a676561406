"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AdminUserCreate,
    AdminUserUpdate,
    AuthResponse,
    CurrentUser,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserOut,
    UsersListResponse,
)
from app.schemas.health import HealthResponse

__all__ = [
    "AdminUserCreate",
    "AdminUserUpdate",
    "AuthResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "RegisterRequest",
    "UserOut",
    "UsersListResponse",
]
