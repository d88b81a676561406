"""JWT login/registration and auth dependencies (get_current_user, RolePolicy, require_admin)."""

import logging
from typing import Annotated, Any, NoReturn

import jwt
from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import (
    PasswordHasher,
    TokenIssuer,
    get_password_hasher,
    get_token_issuer,
)
from app.models import Role
from app.schemas.auth import AuthResponse, CurrentUser
from app.services.auth import AuthErrorKind, AuthFailure, AuthService, AuthSuccess
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

STATUS_BY_KIND = {
    AuthErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    AuthErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AuthService:
    return AuthService(UserStore(db), hasher, issuer)


def raise_for_failure(failure: AuthFailure) -> NoReturn:
    """Translate a service failure into the HTTP error for its kind."""
    headers = _BEARER_CHALLENGE if failure.kind is AuthErrorKind.AUTHENTICATION else None
    raise HTTPException(
        status_code=STATUS_BY_KIND[failure.kind],
        detail=failure.message,
        headers=headers,
    )


@router.post("/login", response_model=AuthResponse)
def login(
    body: Annotated[dict[str, Any], Body()],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """
    Authenticate with username and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <token>
    """
    result = service.login(body.get("username"), body.get("password"))
    if isinstance(result, AuthSuccess):
        return result.to_response()
    raise_for_failure(result)


@router.post("/register", response_model=AuthResponse)
def register(
    body: Annotated[dict[str, Any], Body()],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """Create a User-role account and return a token for it."""
    result = service.register(body.get("username"), body.get("email"), body.get("password"))
    if isinstance(result, AuthSuccess):
        return result.to_response()
    raise_for_failure(result)


def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> CurrentUser | None:
    """
    Dependency: decode the Bearer token if one is sent.

    No token -> None (anonymous). A token that fails validation is always a 401,
    even on routes that allow anonymous callers.
    """
    if credentials is None:
        return None
    try:
        payload = issuer.decode(credentials.credentials)
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers=_BEARER_CHALLENGE,
        ) from e
    return CurrentUser(
        username=payload["name"],
        email=payload["email"],
        role=payload["role"],
    )


def get_current_user(
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the caller. Raises 401 if missing or invalid."""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=_BEARER_CHALLENGE,
        )
    return current_user


class RolePolicy:
    """Dependency declaring the role a route requires. Raises 403 on mismatch."""

    def __init__(self, role: Role) -> None:
        self.role = role

    def __call__(
        self,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if current_user.role != self.role:
            logger.warning(
                "Forbidden: %s (role %s) needs %s",
                current_user.username,
                current_user.role.value,
                self.role.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{self.role.value} access required",
            )
        return current_user


require_admin = RolePolicy(Role.ADMIN)


@router.get("/me", response_model=CurrentUser)
def read_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Return the identity carried by the caller's token."""
    return current_user
