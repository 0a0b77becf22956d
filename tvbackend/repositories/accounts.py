"""
Account repository.

The only code that reads or writes the ``accounts`` table. Every method is
keyed by the unique username and commits its own transaction.
"""
import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tvbackend.core.errors import AccountNotFoundError, DuplicateUsernameError, InternalError
from tvbackend.models.account import Account

logger = logging.getLogger("tvbackend.store")


class AccountStore:
    """Credential store over an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, username: str, password_hash: str) -> int:
        """Insert a new account and return its id.

        Uniqueness is left to the database constraint so that two racing
        creates for the same username resolve to exactly one row.
        """
        account = Account(username=username, password_hash=password_hash)
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info("account_create_conflict username=%s", username)
            raise DuplicateUsernameError() from exc
        except SQLAlchemyError as exc:
            await self._fail("create", exc)
        logger.info("account_created id=%s username=%s", account.id, username)
        return account.id

    async def find_by_username(self, username: str) -> Account:
        try:
            result = await self.db.execute(
                select(Account)
                .where(Account.username == username)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            await self._fail("find_by_username", exc)
        account = result.scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError()
        return account

    async def update_password_hash(self, username: str, password_hash: str) -> None:
        await self._update(username, password_hash=password_hash)

    async def set_pending_token(self, username: str, token: str, expires_at: datetime | None) -> None:
        await self._update(username, pending_token=token, pending_token_expires_at=expires_at)

    async def clear_pending_token(self, username: str) -> None:
        await self._update(
            username,
            must_exist=False,
            pending_token=None,
            pending_token_expires_at=None,
        )

    async def record_login(self, username: str, at: datetime) -> None:
        await self._update(username, must_exist=False, last_login_at=at)

    async def delete(self, username: str) -> None:
        try:
            result = await self.db.execute(delete(Account).where(Account.username == username))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self._fail("delete", exc)
        if result.rowcount == 0:
            raise AccountNotFoundError()
        logger.info("account_deleted username=%s", username)

    async def _update(self, username: str, *, must_exist: bool = True, **values) -> None:
        try:
            result = await self.db.execute(
                update(Account)
                .where(Account.username == username)
                .values(**values)
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self._fail("update", exc)
        if must_exist and result.rowcount == 0:
            raise AccountNotFoundError()

    async def _fail(self, operation: str, exc: SQLAlchemyError):
        await self.db.rollback()
        logger.error("account_store_error op=%s error=%s", operation, exc.__class__.__name__)
        raise InternalError("Account store unavailable") from exc
