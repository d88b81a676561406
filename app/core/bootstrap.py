"""Startup tasks: seed the first Admin account."""

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.security import PasswordHasher
from app.models import Role, User
from app.schemas.auth import AdminUserCreate, first_error
from app.services.user_store import DuplicateUserError, UserStore

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def ensure_default_admin(
    session: Session, settings: "Settings", hasher: PasswordHasher
) -> User | None:
    """
    Create an Admin from ADMIN_USERNAME / ADMIN_EMAIL / ADMIN_PASSWORD if none exists.

    Skipped when any Admin is present, ADMIN_PASSWORD is unset (no default
    password is ever used) or the configured values fail the same checks as
    registration. A taken username gets a numeric suffix.
    Returns the created user, or None when nothing was created.
    """
    store = UserStore(session)
    if store.has_role(Role.ADMIN):
        return None

    if settings.ADMIN_PASSWORD is None or not settings.ADMIN_PASSWORD.get_secret_value():
        logger.warning("No admin present, but ADMIN_PASSWORD is not set; skipping default admin.")
        return None

    try:
        request = AdminUserCreate.model_validate(
            {
                "username": settings.ADMIN_USERNAME,
                "email": settings.ADMIN_EMAIL,
                "password": settings.ADMIN_PASSWORD.get_secret_value(),
                "role": Role.ADMIN,
            }
        )
    except ValidationError as e:
        field, message = first_error(e)
        logger.warning(
            "Invalid default admin settings (%s); skipping default admin.",
            message,
            extra={"field": field},
        )
        return None

    if store.get_by_email(request.email) is not None:
        logger.warning(
            "No admin present, but ADMIN_EMAIL %s belongs to another user; skipping default admin.",
            request.email,
        )
        return None

    username = request.username
    suffix = 1
    while store.get_by_username(username) is not None:
        suffix += 1
        username = f"{request.username}{suffix}"

    try:
        admin = store.add(
            username=username,
            email=request.email,
            password_hash=hasher.hash(request.password),
            role=request.role,
        )
    except DuplicateUserError:
        # Another process seeded concurrently.
        logger.info("Default admin was created concurrently; nothing to do.")
        return None
    logger.warning("Created default admin: username=%s id=%s", admin.username, admin.id)
    return admin
