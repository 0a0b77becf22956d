"""
Database Session Management
===========================
Builds the async engine used by the credential store and the FastAPI
session dependency.
"""
import re
import ssl as _ssl

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tvbackend.core.config import settings


def to_async_url(database_url: str) -> tuple[str, bool]:
    """Rewrite a sync URL for the async drivers.

    Returns the URL and whether SSL was requested through ``sslmode``.
    """
    async_db_url = database_url
    need_ssl = False

    if "postgresql" in async_db_url:
        # Ensure standard postgresql:// becomes postgresql+asyncpg://
        if "+asyncpg" not in async_db_url:
            async_db_url = async_db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
            async_db_url = async_db_url.replace("postgresql://", "postgresql+asyncpg://")
        if "sslmode=require" in async_db_url or "sslmode=verify" in async_db_url:
            need_ssl = True
        # Strip psycopg-specific parameters that asyncpg doesn't understand
        async_db_url = re.sub(r'[&?]sslmode=[^&]*', '', async_db_url)
        async_db_url = re.sub(r'[&?]channel_binding=[^&]*', '', async_db_url)
        async_db_url = re.sub(r'\?$', '', async_db_url)
    elif "sqlite" in async_db_url:
        if "+aiosqlite" not in async_db_url:
            async_db_url = async_db_url.replace("sqlite://", "sqlite+aiosqlite://")

    return async_db_url, need_ssl


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    async_db_url, need_ssl = to_async_url(database_url)

    if "sqlite" in async_db_url:
        # One connection per session; SQLite serializes writers itself.
        return create_async_engine(
            async_db_url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )

    connect_args = {}
    if need_ssl:
        # asyncpg uses an ssl.SSLContext instead of the sslmode= URL param
        ssl_ctx = _ssl.create_default_context()
        if settings.db_ssl_verify:
            ssl_ctx.check_hostname = True
            ssl_ctx.verify_mode = _ssl.CERT_REQUIRED
        else:
            ssl_ctx.check_hostname = False
            ssl_ctx.verify_mode = _ssl.CERT_NONE
        connect_args = {"ssl": ssl_ctx}

    return create_async_engine(
        async_db_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,
        connect_args=connect_args,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


async_engine = build_engine(settings.database_url, echo=settings.debug)
AsyncSessionLocal = build_sessionmaker(async_engine)


async def get_db() -> AsyncSession:
    """Async database session dependency generator."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
