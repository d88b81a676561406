"""Auth service: registration and login over the credential store, hasher and token issuer."""

import enum
import logging
from dataclasses import dataclass

import jwt
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.core.security import PasswordHasher, TokenIssuer
from app.models import Role, User
from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, first_error
from app.services.user_store import DuplicateUserError, UserStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


class AuthErrorKind(enum.Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    INTERNAL = "internal"


@dataclass(frozen=True)
class AuthSuccess:
    token: str
    username: str
    email: str
    role: Role

    def to_response(self) -> AuthResponse:
        return AuthResponse(
            token=self.token,
            username=self.username,
            email=self.email,
            role=self.role,
        )


@dataclass(frozen=True)
class AuthFailure:
    kind: AuthErrorKind
    message: str
    field: str | None = None


AuthResult = AuthSuccess | AuthFailure


class AuthService:
    """
    Orchestrates registration (validation, uniqueness, hashing, persistence)
    and login (lookup, hash verification, token issuance).

    Expected failures come back as AuthFailure values; nothing here raises for
    bad input or wrong credentials.
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer

    def register(self, username: object, email: object, password: object) -> AuthResult:
        try:
            request = RegisterRequest.model_validate(
                {"username": username, "email": email, "password": password}
            )
        except ValidationError as e:
            field, message = first_error(e)
            logger.warning("Registration rejected: %s", message, extra={"field": field})
            return AuthFailure(AuthErrorKind.VALIDATION, message, field)

        try:
            if self.store.get_by_username(request.username) is not None:
                return self._conflict("username", request.username)
            if self.store.get_by_email(request.email) is not None:
                return self._conflict("email", request.username)

            # add() commits, so the token must exist before the row does.
            token = self.issuer.issue(request.username, request.email, Role.USER)
            try:
                user = self.store.add(
                    username=request.username,
                    email=request.email,
                    password_hash=self.hasher.hash(request.password),
                    role=Role.USER,
                )
            except DuplicateUserError as e:
                return self._conflict(e.field, request.username)

            result = AuthSuccess(
                token=token, username=user.username, email=user.email, role=Role(user.role)
            )
        except (SQLAlchemyError, jwt.PyJWTError):
            logger.exception("Unexpected error during registration for user: %s", request.username)
            self.store.session.rollback()
            return AuthFailure(
                AuthErrorKind.INTERNAL, "An unexpected error occurred during registration"
            )

        logger.info("Registration successful for user: %s", user.username)
        return result

    def login(self, username: object, password: object) -> AuthResult:
        try:
            request = LoginRequest.model_validate({"username": username, "password": password})
        except ValidationError as e:
            field, message = first_error(e)
            return AuthFailure(AuthErrorKind.VALIDATION, message, field)

        try:
            user = self.store.get_by_username(request.username)
            if user is None:
                logger.warning("Login failed: user %s not found", request.username)
                self.hasher.dummy_verify(request.password)
                return AuthFailure(AuthErrorKind.AUTHENTICATION, INVALID_CREDENTIALS)

            if not self.hasher.verify(request.password, user.password_hash):
                logger.warning("Login failed: invalid password for user %s", request.username)
                return AuthFailure(AuthErrorKind.AUTHENTICATION, INVALID_CREDENTIALS)

            result = self._issue(user)
        except (SQLAlchemyError, jwt.PyJWTError):
            logger.exception("Unexpected error during login for user: %s", request.username)
            self.store.session.rollback()
            return AuthFailure(AuthErrorKind.INTERNAL, "An unexpected error occurred during login")

        logger.info("Login successful for user: %s", user.username)
        return result

    def _issue(self, user: User) -> AuthSuccess:
        role = Role(user.role)
        token = self.issuer.issue(user.username, user.email, role)
        return AuthSuccess(token=token, username=user.username, email=user.email, role=role)

    def _conflict(self, field: str, username: str) -> AuthFailure:
        message = f"{field.capitalize()} already exists"
        logger.warning("Registration failed for user %s: %s", username, message)
        return AuthFailure(AuthErrorKind.CONFLICT, message, field)
