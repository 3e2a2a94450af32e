import os
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from practice_perfect.core.config import settings
from practice_perfect.core.rate_limiting import (
    issue_throttle,
    limiter,
    verify_throttle,
)
from practice_perfect.models import Base, User, VerificationArtifact

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "test@example.com"

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow


def create_test_session_token(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    email: str = TEST_USER_EMAIL,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    iat: datetime | None = None,
    audience: str | None = None,
    issuer: str | None = None,
) -> str:
    """Create a signed session JWT for test authentication.

    Built with PyJWT directly so tests can forge claims the application
    would never produce (wrong audience, past expiry).

    Args:
        user_id: User UUID to encode in the sub claim.
        email: Email claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.
        iat: Issued-at time. Defaults to now.
        audience: aud claim. Defaults to settings.auth_audience.
        issuer: iss claim. Defaults to settings.auth_issuer.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": audience or settings.auth_audience,
        "iss": issuer or settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": iat or now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


async def artifacts_for_email(
    db: AsyncSession, email: str
) -> list[VerificationArtifact]:
    """All stored sign-in artifacts for an email, expired ones included."""
    stmt = select(VerificationArtifact).where(VerificationArtifact.email == email)
    result = await db.execute(stmt)
    return list(result.scalars().all())


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create test database engine.

    Uses TEST_DATABASE_URL when set (e.g., a PostgreSQL test database);
    otherwise a throwaway SQLite file. A file rather than :memory: so that
    separate connections see the same data in concurrency tests.
    """
    url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    )
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession):
    """Create a test user in the database.

    Yields:
        User model instance.
    """
    user = User(id=TEST_USER_ID, email=TEST_USER_EMAIL, display_name="test")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    yield user


# =============================================================================
# Rate Limit + Mail Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty per-IP and per-email counters."""
    limiter.reset()
    issue_throttle.reset()
    verify_throttle.reset()
    yield
    limiter.reset()
    issue_throttle.reset()
    verify_throttle.reset()


@pytest.fixture
def sent_emails(monkeypatch) -> list[dict]:
    """Capture sign-in emails instead of calling Resend.

    Returns:
        List that receives one dict of send_sign_in_email kwargs per email.
    """
    outbox: list[dict] = []

    async def fake_send(**kwargs) -> None:
        outbox.append(kwargs)

    monkeypatch.setattr(
        "practice_perfect.services.sign_in_issuer.send_sign_in_email", fake_send
    )
    return outbox


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory,
    sent_emails,  # noqa: ARG001 - routes mail to the outbox
    monkeypatch,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without authentication.

    Sets up:
    - Test database connection via dependency override
    - Session credentials signed with the test secret
    - Sign-in emails captured by the sent_emails fixture

    Yields:
        AsyncClient with no auth cookie.
    """
    from practice_perfect.core.database import get_db
    from practice_perfect.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(
    client: AsyncClient,
    test_user,  # noqa: ARG001 - ensures user exists
) -> AsyncClient:
    """Async HTTP client carrying a valid auth cookie for TEST_USER_ID."""
    client.cookies.set(settings.auth_cookie_name, create_test_session_token())
    return client
