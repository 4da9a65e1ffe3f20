"""Shared fixtures: in-memory SQLite database and a fake upstream API."""

import os

# Settings are cached on first import, so the environment is set up front
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["GOTRUE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from models.platform_connection import Platform, PlatformConnection
from services.api_client import RetryingAPIClient, RetryPolicy
from services.channel_sync import SyncOrchestrator
from services.quota import QuotaTracker
from services.snapshot_capture import SnapshotCapture
from services.token_manager import TokenLifecycleManager

from helpers import TODAY, FakeUpstream, SleepRecorder


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_connection(db):
    async def _make(
        account_id: str = "acct-1",
        platform: Platform = Platform.YOUTUBE,
        external_account_id: str = "UC123",
        access_token: str = "access-token",
        refresh_token: str | None = "refresh-token",
        expires_at: datetime | None = None,
        expires_in: timedelta | None = timedelta(hours=1),
    ) -> PlatformConnection:
        if expires_at is None and expires_in is not None:
            expires_at = datetime.now(timezone.utc) + expires_in
        connection = PlatformConnection(
            account_id=account_id,
            platform=platform,
            external_account_id=external_account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        db.add(connection)
        await db.commit()
        return connection
    return _make


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
async def api_client(upstream, sleeper):
    client = RetryingAPIClient(
        policy=RetryPolicy(max_attempts=3, base_delay=1.0),
        transport=upstream.transport(),
        sleep=sleeper,
    )
    yield client
    await client.close()


@pytest.fixture
def quota():
    return QuotaTracker()


@pytest.fixture
def orchestrator(api_client, quota, sleeper, session_factory):
    return SyncOrchestrator(
        tokens=TokenLifecycleManager(),
        quota=quota,
        client=api_client,
        inter_call_delay=0,
        inter_account_delay=0,
        sleep=sleeper,
        today=lambda tz: TODAY,
        session_factory=session_factory,
    )


@pytest.fixture
def snapshot_capture(api_client, quota, sleeper, session_factory):
    return SnapshotCapture(
        tokens=TokenLifecycleManager(),
        quota=quota,
        client=api_client,
        inter_account_delay=0,
        sleep=sleeper,
        session_factory=session_factory,
    )
