"""Shared test fixtures.

Unit tests run against FakeAccountRepository (tests/fakes.py). Repository
tests need PostgreSQL and are skipped when it is not listening on 5432.
"""

import socket
from collections.abc import AsyncGenerator, Iterator
from unittest.mock import patch

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models.base import Base
from tests.fakes import FakeAccountRepository

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest.fixture(autouse=True)
def auth_settings() -> Iterator[None]:
    """Sign tokens with the test secret and enable Google credentials."""
    original_secret = settings.auth_secret
    original_client_id = settings.google_client_id
    original_client_secret = settings.google_client_secret

    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    settings.google_client_id = "test-google-client-id"
    settings.google_client_secret = SecretStr("test-google-client-secret")
    yield
    settings.auth_secret = original_secret
    settings.google_client_id = original_client_id
    settings.google_client_secret = original_client_secret


@pytest.fixture
def fake_accounts() -> Iterator[FakeAccountRepository]:
    """In-memory AccountRepository patched into every consumer."""
    fake = FakeAccountRepository()
    with (
        patch("app.core.account_linking.AccountRepository", fake),
        patch("app.services.login_service.AccountRepository", fake),
    ):
        yield fake


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()
