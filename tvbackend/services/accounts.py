"""
Account Service
===============
Register, login, password reset/change, email verification and deletion.

Hashing is CPU bound, so every hash/verify call is pushed to the worker
thread pool and the event loop keeps serving other requests.
"""
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from fastapi.concurrency import run_in_threadpool

from tvbackend.core.errors import AccountNotFoundError, AuthError, InvalidTokenError
from tvbackend.core.security import (
    Clock,
    PasswordHasher,
    TokenExpiredError,
    TokenInvalidError,
    TokenIssuer,
    token_fingerprint,
    utcnow,
)
from tvbackend.middleware.prometheus import record_auth_event
from tvbackend.models.account import Account
from tvbackend.repositories.accounts import AccountStore

security_logger = logging.getLogger("tvbackend.security")

CodeDispatcher = Callable[[str, str, str], bool]


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    expires_at: int
    expires_in: int
    account: Account


def _code_digest(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_numeric_code(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class AccountService:
    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        *,
        dispatch_code: CodeDispatcher,
        pending_token_ttl: int = 1800,
        code_length: int = 6,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.dispatch_code = dispatch_code
        self.pending_token_ttl = pending_token_ttl
        self.code_length = code_length
        self._clock = clock

    async def register(self, username: str, password: str) -> Account:
        password_hash = await run_in_threadpool(self.hasher.hash, password)
        await self.store.create(username, password_hash)
        record_auth_event("register", "success")
        security_logger.info("auth_register_success username=%s", username)
        return await self.store.find_by_username(username)

    async def login(self, username: str, password: str) -> LoginResult:
        account = await self._find_for_credentials(username)
        if account is None or not await self._password_matches(password, account):
            record_auth_event("login", "failure")
            security_logger.warning("auth_login_failed username=%s", username)
            raise AuthError("Invalid credentials")

        token = self.tokens.issue(account.id, account.username)
        claims = self.tokens.decode(token)
        await self.store.record_login(username, self._clock())
        record_auth_event("login", "success")
        security_logger.info(
            "auth_login_success user_id=%s token=%s", account.id, token_fingerprint(token)
        )
        return LoginResult(
            access_token=token,
            expires_at=claims.expires_at,
            expires_in=claims.expires_at - claims.issued_at,
            account=account,
        )

    async def forgot_password(self, username: str) -> str:
        return await self._issue_pending_code(username, "password_reset")

    async def request_email_verification(self, username: str) -> str:
        return await self._issue_pending_code(username, "email_verification")

    async def reset_password(self, username: str, token: str, new_password: str) -> None:
        account = await self.store.find_by_username(username)
        self._check_pending_token(account, token, "password_reset")

        password_hash = await run_in_threadpool(self.hasher.hash, new_password)
        await self.store.update_password_hash(username, password_hash)
        await self.store.clear_pending_token(username)
        record_auth_event("password_reset", "success")
        security_logger.info("auth_password_reset_success user_id=%s", account.id)

    async def change_password(self, bearer_token: str, old_password: str, new_password: str) -> None:
        account = await self.authenticate(bearer_token)
        if not await self._password_matches(old_password, account):
            record_auth_event("password_change", "failure")
            security_logger.warning("auth_change_password_failed user_id=%s reason=invalid_current", account.id)
            raise AuthError("Current password is incorrect")

        password_hash = await run_in_threadpool(self.hasher.hash, new_password)
        await self.store.update_password_hash(account.username, password_hash)
        await self.store.clear_pending_token(account.username)
        record_auth_event("password_change", "success")
        security_logger.info("auth_change_password_success user_id=%s", account.id)

    async def delete_account(self, username: str, password: str) -> None:
        account = await self.store.find_by_username(username)
        if not await self._password_matches(password, account):
            record_auth_event("delete", "failure")
            security_logger.warning("auth_delete_failed user_id=%s reason=invalid_password", account.id)
            raise AuthError("Invalid credentials")
        await self.store.delete(username)
        record_auth_event("delete", "success")
        security_logger.info("auth_account_deleted user_id=%s", account.id)

    async def verify_email(self, username: str, token: str) -> None:
        """Confirm a verification code without consuming it."""
        account = await self.store.find_by_username(username)
        self._check_pending_token(account, token, "email_verification")
        record_auth_event("email_verify", "success")
        security_logger.info("auth_email_verified user_id=%s", account.id)

    async def authenticate(self, bearer_token: str) -> Account:
        """Resolve the account behind a live session token."""
        try:
            claims = self.tokens.verify(bearer_token)
        except TokenExpiredError:
            raise AuthError("Token expired")
        except TokenInvalidError:
            raise AuthError("Could not validate credentials")

        account = await self._find_for_credentials(claims.subject_username)
        # A re-created username gets a new id; old tokens must not carry over.
        if account is None or account.id != claims.subject_id:
            raise AuthError("Could not validate credentials")
        return account

    async def _issue_pending_code(self, username: str, purpose: str) -> str:
        account = await self.store.find_by_username(username)
        code = generate_numeric_code(self.code_length)
        expires_at = self._clock() + timedelta(seconds=self.pending_token_ttl)
        await self.store.set_pending_token(username, _code_digest(code), expires_at)

        dispatched = await run_in_threadpool(self.dispatch_code, username, code, purpose)
        record_auth_event(purpose, "requested")
        security_logger.info(
            "auth_code_requested user_id=%s purpose=%s dispatched=%s", account.id, purpose, dispatched
        )
        return code

    def _check_pending_token(self, account: Account, submitted: str, purpose: str) -> None:
        stored = account.pending_token
        expires_at = account.pending_token_expires_at
        reason = None
        if not stored:
            reason = "none_pending"
        elif expires_at is not None and _as_utc(expires_at) <= self._clock():
            reason = "expired"
        elif not hmac.compare_digest(stored, _code_digest(submitted)):
            reason = "mismatch"

        if reason is not None:
            record_auth_event(purpose, "invalid_token")
            security_logger.warning("auth_code_rejected user_id=%s purpose=%s reason=%s", account.id, purpose, reason)
            raise InvalidTokenError("Invalid or expired token")

    async def _find_for_credentials(self, username: str) -> Account | None:
        try:
            return await self.store.find_by_username(username)
        except AccountNotFoundError:
            return None

    async def _password_matches(self, password: str, account: Account) -> bool:
        return await run_in_threadpool(self.hasher.verify, password, account.password_hash)
