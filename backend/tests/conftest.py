"""Shared test fixtures."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import patch

import fakeredis.aioredis
import pytest

from invite_store.invitation_store import TeamInvitationStore
from invite_store.retry import RetryPolicy
from tests.fakes import CountingSession


@pytest.fixture(autouse=True)
async def setup_test_db(tmp_path):
    """Initialize a fresh SQLite database for each test."""
    from invite_store.database import init_db
    import invite_store.database as db_mod

    db_file = str(tmp_path / "test.db")
    with patch.object(db_mod, "settings") as mock_s:
        mock_s.database_url = f"sqlite:///{db_file}"
        await init_db()

    yield


@pytest.fixture(autouse=True)
async def setup_test_redis():
    """Provide a fake Redis instance for each test."""
    import invite_store.redis_client as redis_mod

    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await fake.flushall()
    redis_mod._redis = fake
    yield
    await fake.aclose()
    redis_mod._redis = None


@pytest.fixture
def fast_writes() -> RetryPolicy:
    """Five attempts, no sleeping between them."""
    return RetryPolicy(attempts=5, base_delay=0, max_delay=0)


@pytest.fixture
def single_read() -> RetryPolicy:
    return RetryPolicy(attempts=1, base_delay=0, max_delay=0)


@pytest.fixture
def session() -> CountingSession:
    return CountingSession()


@pytest.fixture
async def store(session, single_read, fast_writes) -> AsyncGenerator[TeamInvitationStore, None]:
    """Invitation store over a call-counting session, with zero-delay retries."""
    yield TeamInvitationStore(session, read_policy=single_read, write_policy=fast_writes)


@pytest.fixture
def team() -> uuid.UUID:
    return uuid.uuid4()
