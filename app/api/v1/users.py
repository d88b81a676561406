"""Admin-only user management: list, read, create, update and delete accounts."""

import logging
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.api.v1.auth import require_admin
from app.core.database import get_db
from app.core.security import PasswordHasher, get_password_hasher
from app.models import User
from app.schemas.auth import (
    AdminUserCreate,
    AdminUserUpdate,
    CurrentUser,
    MessageResponse,
    UserOut,
    UsersListResponse,
    first_error,
)
from app.services.user_store import DuplicateUserError, UserStore

logger = logging.getLogger(__name__)
router = APIRouter()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def get_user_store(db: Annotated[Session, Depends(get_db)]) -> UserStore:
    return UserStore(db)


def _parse(schema: type[SchemaT], body: dict[str, Any]) -> SchemaT:
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        _, message = first_error(e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message) from e


def _get_or_404(store: UserStore, user_id: int) -> User:
    user = store.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _conflict(field: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"{field.capitalize()} already exists",
    )


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
) -> UsersListResponse:
    """List all users (admin only)."""
    return UsersListResponse(users=[UserOut.model_validate(u) for u in store.list_users()])


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
) -> UserOut:
    return UserOut.model_validate(_get_or_404(store, user_id))


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    body: Annotated[dict[str, Any], Body()],
    admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> UserOut:
    """Create an account with an explicit role. The password is hashed before storage."""
    request = _parse(AdminUserCreate, body)
    if store.get_by_username(request.username) is not None:
        raise _conflict("username")
    if store.get_by_email(request.email) is not None:
        raise _conflict("email")
    try:
        user = store.add(
            username=request.username,
            email=request.email,
            password_hash=hasher.hash(request.password),
            role=request.role,
        )
    except DuplicateUserError as e:
        raise _conflict(e.field) from e
    logger.info(
        "User created by admin",
        extra={"admin": admin.username, "user_id": user.id, "role": user.role},
    )
    return UserOut.model_validate(user)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: Annotated[dict[str, Any], Body()],
    admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> UserOut:
    """
    Change email, role and/or password. Tokens already issued to the user keep
    their old role claim until they expire.
    """
    request = _parse(AdminUserUpdate, body)
    user = _get_or_404(store, user_id)
    if request.email is not None and request.email != user.email:
        other = store.get_by_email(request.email)
        if other is not None and other.id != user.id:
            raise _conflict("email")
    password_hash = hasher.hash(request.password) if request.password is not None else None
    try:
        user = store.update(
            user,
            email=request.email,
            role=request.role,
            password_hash=password_hash,
        )
    except DuplicateUserError as e:
        raise _conflict(e.field) from e
    logger.info(
        "User updated by admin",
        extra={
            "admin": admin.username,
            "user_id": user.id,
            "role_changed": request.role is not None,
            "password_changed": password_hash is not None,
        },
    )
    return UserOut.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
) -> MessageResponse:
    """Permanently delete a user. Admins cannot delete their own account."""
    user = _get_or_404(store, user_id)
    if user.username == admin.username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )
    store.delete(user)
    logger.info("User deleted by admin", extra={"admin": admin.username, "user_id": user_id})
    return MessageResponse(message="User deleted successfully")
