"""
Create a user (e.g. an extra admin). Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user alice alice@example.com s3cret-pass Admin
"""
import argparse
import logging
import sys

from pydantic import ValidationError

from app.core.database import SessionLocal
from app.core.security import get_password_hasher
from app.models import Role
from app.schemas.auth import AdminUserCreate, first_error
from app.services.user_store import DuplicateUserError, UserStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a platform user from the command line.")
    parser.add_argument("username", help="Username (1-255 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (6-128 chars)")
    parser.add_argument(
        "role", nargs="?", default=Role.USER.value, choices=[r.value for r in Role]
    )
    args = parser.parse_args(argv)

    try:
        request = AdminUserCreate.model_validate(
            {
                "username": args.username,
                "email": args.email,
                "password": args.password,
                "role": args.role,
            }
        )
    except ValidationError as e:
        _, message = first_error(e)
        print(message, file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        store = UserStore(db)
        if store.get_by_username(request.username) is not None:
            print(f"User '{request.username}' already exists.", file=sys.stderr)
            return 1
        try:
            user = store.add(
                username=request.username,
                email=request.email,
                password_hash=get_password_hasher().hash(request.password),
                role=request.role,
            )
        except DuplicateUserError as e:
            print(e.message, file=sys.stderr)
            return 1
        logger.info("Created user '%s' with role '%s' (id=%s).", user.username, user.role, user.id)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
