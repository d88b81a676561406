"""Request/response schemas for auth and user-management endpoints."""

from datetime import datetime

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
)
from app.models.user import Role


def _require(value: object, message: str) -> object:
    """Reject None and blank strings before type validation runs."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(message)
    return value


def _check_username(value: str) -> str:
    value = value.strip()
    if len(value) > USERNAME_MAX_LEN:
        raise ValueError(f"Username must be at most {USERNAME_MAX_LEN} characters long")
    return value


def _check_email(value: str) -> str:
    value = value.strip()
    if len(value) > EMAIL_MAX_LEN:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LEN} characters long")
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError("Email is not a valid email address") from e


def _check_password(value: str) -> str:
    if len(value) < PASSWORD_MIN_LEN:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LEN} characters long")
    if len(value) > PASSWORD_MAX_LEN:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LEN} characters long")
    return value


def first_error(exc: ValidationError) -> tuple[str, str]:
    """Return (field, client-facing message) for the first error in a ValidationError."""
    err = exc.errors()[0]
    field = str(err["loc"][0]) if err["loc"] else "body"
    if err["type"] == "value_error":
        return field, str(err["ctx"]["error"])
    if err["type"] == "string_type":
        return field, f"{field.capitalize()} must be a string"
    if err["type"] == "enum":
        return field, f"{field.capitalize()} must be one of: {', '.join(r.value for r in Role)}"
    return field, f"{field.capitalize()} is invalid"


class LoginRequest(BaseModel):
    """Credentials for login."""

    model_config = {"extra": "ignore", "validate_default": True}

    username: str = Field(default="", description="Username")
    password: str = Field(default="", description="Password")

    @field_validator("username", "password", mode="before")
    @classmethod
    def required(cls, v: object) -> object:
        return _require(v, "Username and password are required")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class RegisterRequest(BaseModel):
    """Self-service registration. Fields are checked in declaration order."""

    model_config = {"extra": "ignore", "validate_default": True}

    username: str = Field(default="", description="Unique login name")
    email: str = Field(default="", description="Unique email address")
    password: str = Field(default="", description=f"At least {PASSWORD_MIN_LEN} characters")

    @field_validator("username", mode="before")
    @classmethod
    def username_required(cls, v: object) -> object:
        return _require(v, "Username is required")

    @field_validator("email", mode="before")
    @classmethod
    def email_required(cls, v: object) -> object:
        return _require(v, "Email is required")

    @field_validator("password", mode="before")
    @classmethod
    def password_required(cls, v: object) -> object:
        return _require(v, "Password is required")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _check_username(v)

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class AdminUserCreate(RegisterRequest):
    """Admin-created account; role may be chosen explicitly."""

    role: Role = Field(default=Role.USER, description="User or Admin")


class AdminUserUpdate(BaseModel):
    """Partial update by an administrator. Omitted fields are left unchanged."""

    model_config = {"extra": "ignore"}

    email: str | None = None
    role: Role | None = None
    password: str | None = None

    @field_validator("email")
    @classmethod
    def validate_email_shape(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _check_email(str(_require(v, "Email is required")))

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str | None:
        # An empty password means "keep the current one".
        if v is None or v == "":
            return None
        return _check_password(v)


class AuthResponse(BaseModel):
    """Returned by login and registration."""

    token: str = Field(..., description="JWT access token")
    username: str
    email: str
    role: Role


class CurrentUser(BaseModel):
    """Identity decoded from a bearer token."""

    username: str
    email: str
    role: Role


class UserOut(BaseModel):
    """User entry for admin endpoints (no password hash)."""

    model_config = {"from_attributes": True}

    id: int
    username: str
    email: str
    role: Role
    created_at: datetime | None = None


class UsersListResponse(BaseModel):
    """Response for GET /admin/users."""

    users: list[UserOut]


class MessageResponse(BaseModel):
    message: str
