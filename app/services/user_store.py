"""Credential store: persistence of User rows behind a small repository."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Role, User

logger = logging.getLogger(__name__)


class DuplicateUserError(Exception):
    """Raised when a username or email collides with an existing row."""

    def __init__(self, field: str) -> None:
        self.field = field
        self.message = f"{field.capitalize()} already exists"
        super().__init__(self.message)


class UserStore:
    """
    Repository over the users table. One instance per request session.

    Uniqueness is enforced by the unique indexes on username and email; callers
    may pre-check with get_by_username/get_by_email, but a concurrent insert is
    only caught here, when the commit fails.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_id(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_by_username(self, username: str) -> User | None:
        return self.session.query(User).filter(User.username == username).first()

    def get_by_email(self, email: str) -> User | None:
        return self.session.query(User).filter(User.email == email).first()

    def list_users(self) -> list[User]:
        return self.session.query(User).order_by(User.id).all()

    def has_role(self, role: Role) -> bool:
        return (
            self.session.query(User.id).filter(User.role == role.value).first()
            is not None
        )

    def add(self, username: str, email: str, password_hash: str, role: Role = Role.USER) -> User:
        """Insert a user and commit. Raises DuplicateUserError on a unique-index violation."""
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role=role.value,
        )
        self.session.add(user)
        self._commit(username=username, email=email, exclude_id=None)
        self.session.refresh(user)
        return user

    def update(
        self,
        user: User,
        *,
        email: str | None = None,
        role: Role | None = None,
        password_hash: str | None = None,
    ) -> User:
        """Apply the given changes to one user and commit."""
        if email is not None:
            user.email = email
        if role is not None:
            user.role = role.value
        if password_hash is not None:
            user.password_hash = password_hash
        self._commit(username=None, email=email, exclude_id=user.id)
        self.session.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.session.delete(user)
        self.session.commit()

    def _commit(self, *, username: str | None, email: str | None, exclude_id: int | None) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            field = self._collided_field(username, email, exclude_id)
            if field is None:
                raise
            logger.warning("Unique constraint violated on users.%s", field)
            raise DuplicateUserError(field) from e

    def _collided_field(
        self, username: str | None, email: str | None, exclude_id: int | None
    ) -> str | None:
        """Work out which unique column the failed commit hit by re-reading committed rows."""
        if username is not None:
            other = self.get_by_username(username)
            if other is not None and other.id != exclude_id:
                return "username"
        if email is not None:
            other = self.get_by_email(email)
            if other is not None and other.id != exclude_id:
                return "email"
        return None
