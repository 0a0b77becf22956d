import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

_DB_FD, _DB_PATH = tempfile.mkstemp(suffix=".db")
os.close(_DB_FD)
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["ENV"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from tvbackend.core.security import PasswordHasher, TokenIssuer  # noqa: E402
from tvbackend.db.base import Base  # noqa: E402
from tvbackend.db.session import build_engine, build_sessionmaker  # noqa: E402
from tvbackend.repositories.accounts import AccountStore  # noqa: E402
from tvbackend.services.accounts import AccountService  # noqa: E402
import tvbackend.models  # noqa: E402,F401


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 9, 12, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class CodeOutbox:
    """Collects dispatched codes instead of queueing Celery tasks."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def __call__(self, username: str, code: str, purpose: str) -> bool:
        self.sent.append((username, code, purpose))
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hasher():
    return PasswordHasher()


@pytest.fixture
def tokens(clock):
    return TokenIssuer("unit-test-secret", default_ttl=3600, clock=clock)


@pytest.fixture
def outbox():
    return CodeOutbox()


@pytest.fixture
def unique_username():
    return f"user-{uuid.uuid4().hex[:10]}@example.com"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'accounts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_sessionmaker(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return AccountStore(db_session)


@pytest.fixture
def account_service(store, hasher, tokens, outbox, clock):
    return AccountService(
        store,
        hasher,
        tokens,
        dispatch_code=outbox,
        pending_token_ttl=1800,
        code_length=6,
        clock=clock,
    )


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from tvbackend.main import app

    with TestClient(app) as test_client:
        yield test_client
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)
