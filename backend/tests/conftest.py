"""
Shared test fixtures for ChainReel Backend tests.

Provides:
- Test database (SQLite in-memory)
- Async test client (httpx over ASGITransport)
- Auth tokens and headers
- Mock Redis (sync) and an in-memory async event store for streams
- Mock RQ enqueueing
- Sample seed images
"""

import base64
import io
import os
import tempfile
import uuid
from typing import AsyncGenerator, Dict, Generator, List
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"
os.environ["PROVIDER_API_KEY"] = "test-provider-key"
os.environ["PUBLIC_BASE_URL"] = "https://videos.example.com"
os.environ["STREAM_POLL_INTERVAL_SECONDS"] = "0"

# Create a temporary directory for test storage
_test_storage_dir = tempfile.mkdtemp(prefix="chainreel_test_")
os.environ["STORAGE_PATH"] = _test_storage_dir

from chainreel_api.api.deps import get_db, get_event_redis
from chainreel_api.core.database import Base, get_async_session
from chainreel_api.core.security import create_access_token
from chainreel_api.main import app


# =============================================================================
# Test Database Configuration
# =============================================================================

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)

TestAsyncSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    """Override database dependency for testing."""
    async with TestAsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest_asyncio.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide an async database session for testing.

    Creates all tables before the test and drops them after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestAsyncSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# =============================================================================
# Redis / Queue Fixtures
# =============================================================================


class InMemoryEventRedis:
    """
    Async stand-in for the streaming Redis client.

    Holds progress hashes and event lists in dicts; only the commands the
    event stream issues are implemented.
    """

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.lists: Dict[str, List[str]] = {}
        self.reads = 0

    def seed(self, session_id: str, lines: List[str], status: str = "succeeded") -> None:
        self.hashes[f"chainreel:progress:{session_id}"] = {"status": status}
        self.lists[f"chainreel:events:{session_id}"] = list(lines)

    async def hget(self, key: str, field: str):
        self.reads += 1
        return self.hashes.get(key, {}).get(field)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self.lists.get(key, [])
        stop = len(items) if end == -1 else end + 1
        return items[start:stop]


@pytest.fixture
def event_redis() -> InMemoryEventRedis:
    """In-memory async Redis for event streams."""
    return InMemoryEventRedis()


@pytest.fixture
def mock_redis() -> Generator[MagicMock, None, None]:
    """Mock sync Redis connection used for chain state and cancel flags."""
    mock = MagicMock()
    mock.hgetall.return_value = {}
    mock.hset.return_value = True
    mock.set.return_value = True
    mock.expire.return_value = True
    mock.pipeline.return_value = MagicMock(
        hset=MagicMock(return_value=mock),
        expire=MagicMock(return_value=mock),
        rpush=MagicMock(return_value=mock),
        execute=MagicMock(return_value=[True, True]),
    )

    with patch("chainreel_api.core.queue.get_redis_connection", return_value=mock):
        yield mock


@pytest.fixture
def mock_rq_job() -> MagicMock:
    """Mock RQ Job for tests."""
    mock_job = MagicMock()
    mock_job.id = str(uuid.uuid4())
    mock_job.get_status.return_value = "queued"
    return mock_job


@pytest.fixture
def mock_enqueue_chain(mock_rq_job: MagicMock) -> Generator[MagicMock, None, None]:
    """Mock chain job enqueueing."""
    with patch("chainreel_api.api.videos.enqueue_video_chain") as mock:
        mock.return_value = mock_rq_job
        yield mock


@pytest.fixture
def fixed_session_id() -> Generator[str, None, None]:
    """Pin the session id the generate endpoint assigns."""
    session_uuid = uuid.UUID("11111111-2222-4333-8444-555555555555")
    with patch("chainreel_api.api.videos.uuid4", return_value=session_uuid):
        yield str(session_uuid)


# =============================================================================
# Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(
    test_db: AsyncSession,
    mock_redis: MagicMock,
    event_redis: InMemoryEventRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an async HTTP client for testing the FastAPI application.

    Overrides the database and event-stream dependencies.
    """
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_event_redis] = lambda: event_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# Auth Fixtures
# =============================================================================


@pytest.fixture
def test_user_id() -> str:
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(test_user_id: str) -> dict:
    """Provide authentication headers for the test user."""
    return {"Authorization": f"Bearer {create_access_token(test_user_id)}"}


@pytest.fixture
def second_auth_headers() -> dict:
    """Provide authentication headers for a second user."""
    return {"Authorization": f"Bearer {create_access_token('user_other')}"}


# =============================================================================
# Sample Image Fixtures
# =============================================================================


def _encode_image(img: Image.Image, fmt: str) -> str:
    buffer = io.BytesIO()
    img.save(buffer, fmt)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def sample_png_b64() -> str:
    """Base64 of a 4x4 fully transparent PNG."""
    return _encode_image(Image.new("RGBA", (4, 4), (255, 0, 0, 0)), "PNG")


@pytest.fixture
def sample_jpeg_b64() -> str:
    """Base64 of an 8x8 solid blue JPEG."""
    return _encode_image(Image.new("RGB", (8, 8), (0, 0, 255)), "JPEG")
