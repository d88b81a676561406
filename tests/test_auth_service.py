"""Unit tests for app.services.auth: registration, login, conflicts and failure mapping."""

import unittest
from datetime import timedelta
from unittest.mock import MagicMock, patch

import jwt
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import PasswordHasher, TokenIssuer
from app.models import Base, Role
from app.services.auth import AuthErrorKind, AuthFailure, AuthService, AuthSuccess
from app.services.user_store import DuplicateUserError, UserStore

TTL = timedelta(hours=24)


def _session_factory() -> sessionmaker:
    """Fresh in-memory database with the users table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False)


def _issuer() -> TokenIssuer:
    return TokenIssuer(
        secret="service-test-key-cccccccccccccccccccccccccccccc",
        issuer="game-platform",
        audience="game-platform-clients",
        ttl=TTL,
    )


class AuthServiceTestCase(unittest.TestCase):
    """Real store on SQLite, low-cost bcrypt, real token issuer."""

    def setUp(self) -> None:
        self.session = _session_factory()()
        self.store = UserStore(self.session)
        self.hasher = PasswordHasher(rounds=4)
        self.issuer = _issuer()
        self.service = AuthService(self.store, self.hasher, self.issuer)

    def tearDown(self) -> None:
        self.session.close()

    def assertFailure(self, result: object, kind: AuthErrorKind, message: str | None = None) -> None:
        self.assertIsInstance(result, AuthFailure)
        self.assertEqual(result.kind, kind)
        if message is not None:
            self.assertEqual(result.message, message)


class TestRegisterThenLogin(AuthServiceTestCase):
    """Register then Login with the same credentials yields a User-role token."""

    CREDENTIALS = [
        ("alice", "alice@example.com", "secret1"),
        ("Bob_99", "bob.smith@example.org", "a much longer passphrase"),
        ("ünïcode", "uni@example.net", "пароль123"),
        ("exactly6", "six@example.com", "123456"),
    ]

    def test_round_trip(self) -> None:
        for username, email, password in self.CREDENTIALS:
            with self.subTest(username=username):
                registered = self.service.register(username, email, password)
                self.assertIsInstance(registered, AuthSuccess)
                self.assertEqual(registered.role, Role.USER)

                logged_in = self.service.login(username, password)
                self.assertIsInstance(logged_in, AuthSuccess)
                self.assertEqual(logged_in.username, username)
                self.assertEqual(logged_in.email, email)
                payload = self.issuer.decode(logged_in.token)
                self.assertEqual(payload["role"], "User")
                self.assertEqual(payload["name"], username)

    def test_password_is_stored_hashed(self) -> None:
        self.service.register("alice", "alice@example.com", "secret1")
        user = self.store.get_by_username("alice")
        self.assertNotEqual(user.password_hash, "secret1")
        self.assertTrue(self.hasher.verify("secret1", user.password_hash))

    def test_token_expiry_matches_ttl(self) -> None:
        result = self.service.register("alice", "alice@example.com", "secret1")
        payload = self.issuer.decode(result.token)
        self.assertEqual(payload["exp"] - payload["iat"], int(TTL.total_seconds()))

    def test_username_and_email_are_trimmed(self) -> None:
        result = self.service.register("  alice ", " alice@example.com ", "secret1")
        self.assertIsInstance(result, AuthSuccess)
        self.assertEqual(result.username, "alice")
        self.assertEqual(result.email, "alice@example.com")


class TestRegisterValidation(AuthServiceTestCase):
    """Precondition failures name the offending field and never touch the store."""

    def test_messages_in_field_order(self) -> None:
        cases = [
            (("", "", ""), "username", "Username is required"),
            (("   ", "a@example.com", "secret1"), "username", "Username is required"),
            (("alice", "", "secret1"), "email", "Email is required"),
            (("alice", "a@example.com", ""), "password", "Password is required"),
            (("alice", "a@example.com", None), "password", "Password is required"),
            (("alice", "not-an-email", "secret1"), "email", "Email is not a valid email address"),
            (("alice", "a@example.com", "12345"), "password",
             "Password must be at least 6 characters long"),
            (("alice", "a@example.com", "x" * 129), "password",
             "Password must be at most 128 characters long"),
            ((42, "a@example.com", "secret1"), "username", "Username must be a string"),
        ]
        for args, field, message in cases:
            with self.subTest(args=args):
                result = self.service.register(*args)
                self.assertFailure(result, AuthErrorKind.VALIDATION, message)
                self.assertEqual(result.field, field)
        self.assertEqual(self.store.list_users(), [])


class TestRegisterConflicts(AuthServiceTestCase):
    """Duplicate username or email is a CONFLICT, whether caught by pre-check or unique index."""

    def test_duplicate_username_with_different_email_and_password(self) -> None:
        self.service.register("alice", "alice@example.com", "secret1")
        result = self.service.register("alice", "other@example.com", "different-pass")
        self.assertFailure(result, AuthErrorKind.CONFLICT, "Username already exists")
        self.assertEqual(result.field, "username")

    def test_duplicate_email_with_different_username(self) -> None:
        self.service.register("alice", "alice@example.com", "secret1")
        result = self.service.register("bob", "alice@example.com", "secret2")
        self.assertFailure(result, AuthErrorKind.CONFLICT, "Email already exists")
        self.assertEqual(result.field, "email")

    def test_race_caught_by_unique_index(self) -> None:
        store = MagicMock()
        store.get_by_username.return_value = None
        store.get_by_email.return_value = None
        store.add.side_effect = DuplicateUserError("username")
        service = AuthService(store, self.hasher, self.issuer)
        result = service.register("alice", "alice@example.com", "secret1")
        self.assertFailure(result, AuthErrorKind.CONFLICT, "Username already exists")

    def test_race_against_real_index(self) -> None:
        # The pre-check misses a row committed concurrently; the unique index catches it.
        self.store.add("alice", "alice@example.com", self.hasher.hash("secret1"))
        real_lookup = self.store.get_by_username
        stale = [True]

        def lookup(username: str) -> object:
            if stale:
                stale.pop()
                return None
            return real_lookup(username)

        with patch.object(self.store, "get_by_username", side_effect=lookup):
            result = self.service.register("alice", "new@example.com", "secret1")
        self.assertFailure(result, AuthErrorKind.CONFLICT, "Username already exists")
        self.assertEqual(len(self.store.list_users()), 1)


class TestLogin(AuthServiceTestCase):
    """Login failures are indistinguishable to the caller."""

    def setUp(self) -> None:
        super().setUp()
        self.service.register("alice", "alice@example.com", "secret1")

    def test_wrong_password_and_unknown_user_look_the_same(self) -> None:
        wrong_password = self.service.login("alice", "wrong-password")
        unknown_user = self.service.login("mallory", "wrong-password")
        self.assertFailure(wrong_password, AuthErrorKind.AUTHENTICATION)
        self.assertFailure(unknown_user, AuthErrorKind.AUTHENTICATION)
        self.assertEqual(wrong_password, unknown_user)

    def test_unknown_user_still_runs_a_hash_check(self) -> None:
        with patch.object(self.hasher, "dummy_verify") as dummy:
            self.service.login("mallory", "whatever")
        dummy.assert_called_once_with("whatever")

    def test_missing_fields(self) -> None:
        for username, password in (("", "secret1"), ("alice", ""), (None, None)):
            with self.subTest(username=username, password=password):
                self.assertFailure(
                    self.service.login(username, password),
                    AuthErrorKind.VALIDATION,
                    "Username and password are required",
                )

    def test_login_reflects_current_role(self) -> None:
        user = self.store.get_by_username("alice")
        self.store.update(user, role=Role.ADMIN)
        result = self.service.login("alice", "secret1")
        self.assertEqual(result.role, Role.ADMIN)
        self.assertEqual(self.issuer.decode(result.token)["role"], "Admin")


class TestInternalErrors(AuthServiceTestCase):
    """Persistence and signing failures become INTERNAL with a generic message."""

    def test_store_failure_during_login(self) -> None:
        store = MagicMock()
        store.get_by_username.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        service = AuthService(store, self.hasher, self.issuer)
        with self.assertLogs("app.services.auth", level="ERROR"):
            result = service.login("alice", "secret1")
        self.assertFailure(result, AuthErrorKind.INTERNAL, "An unexpected error occurred during login")
        store.session.rollback.assert_called_once()

    def test_store_failure_during_registration(self) -> None:
        store = MagicMock()
        store.get_by_username.return_value = None
        store.get_by_email.return_value = None
        store.add.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        service = AuthService(store, self.hasher, self.issuer)
        with self.assertLogs("app.services.auth", level="ERROR"):
            result = service.register("alice", "alice@example.com", "secret1")
        self.assertFailure(
            result, AuthErrorKind.INTERNAL, "An unexpected error occurred during registration"
        )
        self.assertNotIn("db down", result.message)

    def test_signing_failure(self) -> None:
        issuer = MagicMock()
        issuer.issue.side_effect = jwt.PyJWTError("bad key")
        service = AuthService(self.store, self.hasher, issuer)
        with self.assertLogs("app.services.auth", level="ERROR"):
            result = service.register("alice", "alice@example.com", "secret1")
        self.assertFailure(result, AuthErrorKind.INTERNAL)
        self.assertEqual(self.store.list_users(), [])

    def test_retry_after_signing_failure_succeeds(self) -> None:
        issuer = MagicMock()
        issuer.issue.side_effect = jwt.PyJWTError("bad key")
        with self.assertLogs("app.services.auth", level="ERROR"):
            AuthService(self.store, self.hasher, issuer).register("alice", "alice@example.com", "secret1")
        result = self.service.register("alice", "alice@example.com", "secret1")
        self.assertIsInstance(result, AuthSuccess)
        self.assertEqual(len(self.store.list_users()), 1)


class TestConcreteScenario(AuthServiceTestCase):
    """register alice, register alice again, wrong login, right login."""

    def test_alice(self) -> None:
        first = self.service.register("alice", "alice@x.com", "secret1")
        self.assertIsInstance(first, AuthSuccess)
        self.assertEqual(first.role, Role.USER)

        again = self.service.register("alice", "alice2@x.com", "secret1")
        self.assertFailure(again, AuthErrorKind.CONFLICT, "Username already exists")

        self.assertFailure(self.service.login("alice", "wrong"), AuthErrorKind.AUTHENTICATION)

        ok = self.service.login("alice", "secret1")
        self.assertIsInstance(ok, AuthSuccess)
        self.assertEqual(self.issuer.decode(ok.token)["role"], "User")


if __name__ == "__main__":
    unittest.main()
