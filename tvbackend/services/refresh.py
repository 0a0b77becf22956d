"""
Refresh Service
===============
Stateless sliding expiry: a live token comes back unchanged, a token that
expired less than the grace window ago is reissued for the same subject,
anything older is refused. Only the signature is trusted; there is no
revocation list and the store is not consulted.
"""
import logging
from dataclasses import dataclass

from tvbackend.core.errors import AuthError, MalformedTokenError
from tvbackend.core.security import TokenInvalidError, TokenIssuer, token_fingerprint
from tvbackend.middleware.prometheus import record_auth_event

security_logger = logging.getLogger("tvbackend.security")


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_at: int
    reissued: bool


class RefreshService:
    def __init__(self, tokens: TokenIssuer, *, grace_seconds: int = 86400, ttl: int | None = None):
        self.tokens = tokens
        self.grace_seconds = grace_seconds
        self.ttl = ttl

    def refresh(self, bearer_token: str) -> RefreshResult:
        try:
            claims = self.tokens.decode(bearer_token)
        except TokenInvalidError:
            record_auth_event("refresh", "malformed")
            security_logger.warning("auth_refresh_malformed token=%s", token_fingerprint(bearer_token))
            raise MalformedTokenError("Malformed bearer token")

        now = self.tokens.now()
        if not claims.is_expired(now):
            record_auth_event("refresh", "unchanged")
            return RefreshResult(access_token=bearer_token, expires_at=claims.expires_at, reissued=False)

        overdue = claims.seconds_since_expiry(now)
        if overdue > self.grace_seconds:
            record_auth_event("refresh", "expired")
            security_logger.warning(
                "auth_refresh_expired user_id=%s overdue=%.0fs grace=%ss",
                claims.subject_id, overdue, self.grace_seconds,
            )
            raise AuthError("Token expired beyond the refresh window")

        token = self.tokens.issue(claims.subject_id, claims.subject_username, self.ttl)
        fresh = self.tokens.decode(token)
        record_auth_event("refresh", "reissued")
        security_logger.info(
            "auth_refresh_reissued user_id=%s token=%s", claims.subject_id, token_fingerprint(token)
        )
        return RefreshResult(access_token=token, expires_at=fresh.expires_at, reissued=True)
