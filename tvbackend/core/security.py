"""
Password hashing and session token signing.

``PasswordHasher`` wraps a passlib ``CryptContext``; ``TokenIssuer`` signs
and checks the HS256 bearer tokens handed out by login and refresh. Both are
built from ``Settings`` by the API dependencies and never read global state
themselves, so tests construct them with their own secret and clock.
"""
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from jose import JWTError, jwt
from passlib.context import CryptContext

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def token_fingerprint(value: str) -> str:
    """Short, log-safe stand-in for a token or code."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


class PasswordHasher:
    def __init__(self, schemes: list[str] | None = None):
        self._context = CryptContext(schemes=schemes or ["pbkdf2_sha256"], deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str | None) -> bool:
        if not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            # unknown scheme or corrupt digest
            return False


class TokenError(Exception):
    pass


class TokenInvalidError(TokenError):
    """Bad signature, broken structure or missing claims."""


class TokenExpiredError(TokenError):
    def __init__(self, claims: "SessionClaims"):
        super().__init__("Token expired")
        self.claims = claims


@dataclass(frozen=True)
class SessionClaims:
    subject_id: int
    subject_username: str
    issued_at: int
    expires_at: int

    def is_expired(self, now: datetime) -> bool:
        return now.timestamp() >= self.expires_at

    def seconds_since_expiry(self, now: datetime) -> float:
        return now.timestamp() - self.expires_at


class TokenIssuer:
    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        default_ttl: int = 3600,
        clock: Clock = utcnow,
    ):
        if not secret_key:
            raise ValueError("A signing secret is required")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.default_ttl = default_ttl
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def issue(self, account_id: int, username: str, ttl: int | None = None) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": str(account_id),
            "username": username,
            "iat": issued_at,
            "exp": issued_at + (ttl if ttl is not None else self.default_ttl),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> SessionClaims:
        """Check signature and claim shape only; expiry is left to the caller."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except (JWTError, AttributeError) as exc:
            raise TokenInvalidError("Invalid token") from exc

        try:
            claims = SessionClaims(
                subject_id=int(payload["sub"]),
                subject_username=str(payload["username"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError("Token is missing required claims") from exc
        if not claims.subject_username:
            raise TokenInvalidError("Token is missing required claims")
        return claims

    def verify(self, token: str) -> SessionClaims:
        claims = self.decode(token)
        if claims.is_expired(self._clock()):
            raise TokenExpiredError(claims)
        return claims
