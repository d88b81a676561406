"""Password hashing and JWT creation/verification for authentication."""

from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import bcrypt
import jwt

from app.core.config import get_settings
from app.models.user import Role

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes of input.
BCRYPT_MAX_BYTES = 72

# Length limits for credential validation.
USERNAME_MAX_LEN = 255
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

# Claims every token we accept must carry.
REQUIRED_CLAIMS = ("name", "email", "role", "iss", "aud", "iat", "exp")


class PasswordHasher:
    """Salted bcrypt hashing with constant-time verification."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    @staticmethod
    def _encode(plain_password: str) -> bytes:
        # Truncate instead of letting bcrypt reject long input; validation caps length anyway.
        return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._encode(plain_password), salt).decode("utf-8")

    def verify(self, plain_password: str, hashed: str) -> bool:
        """Verify a plain password against a stored hash."""
        try:
            return bcrypt.checkpw(self._encode(plain_password), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, plain_password: str) -> None:
        """Spend one verify on a throwaway hash so unknown usernames cost the same as known ones."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(self._encode(plain_password), self._dummy_hash)


class TokenIssuer:
    """Issues and validates HS256 bearer tokens carrying name, email and role claims."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        audience: str,
        ttl: timedelta,
        algorithm: str = "HS256",
    ) -> None:
        if not secret or not secret.strip():
            raise ValueError("JWT signing key is not configured")
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.ttl = ttl
        self.algorithm = algorithm

    def issue(self, username: str, email: str, role: Role | str) -> str:
        """Create a signed token; exp is exactly iat + ttl (whole seconds)."""
        now = datetime.now(UTC).replace(microsecond=0)
        payload: dict[str, Any] = {
            "name": username,
            "email": email,
            "role": Role(role).value,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Decode and validate a token; return its payload.
        Raises jwt.PyJWTError on bad signature, issuer, audience, expiry or missing claims.
        """
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            audience=self.audience,
            issuer=self.issuer,
            options={"require": list(REQUIRED_CLAIMS)},
        )
        for claim in ("name", "email", "role"):
            if not isinstance(payload[claim], str):
                raise jwt.InvalidTokenError(f"Claim {claim} must be a string")
        if payload["role"] not in {r.value for r in Role}:
            raise jwt.InvalidTokenError("Unknown role claim")
        return payload


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher built from settings (dependency)."""
    return PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Process-wide token issuer built from settings (dependency)."""
    settings = get_settings()
    return TokenIssuer(
        secret=settings.JWT_SECRET.get_secret_value(),
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
        ttl=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
        algorithm=settings.JWT_ALGORITHM,
    )
