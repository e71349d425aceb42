"""Root test fixtures shared across all test types.

This conftest contains fixtures that can be used by both unit and integration tests.
Database-specific fixtures are in tests/integration/conftest.py.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("NATIONBUILDER_NATION_SLUG", "testnation")
os.environ.setdefault("NATIONBUILDER_CLIENT_ID", "test-client-id")
os.environ.setdefault("NATIONBUILDER_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("CLOUDFLARE_TURNSTILE_SECRET_KEY", "test-turnstile-secret")

# ruff: noqa: E402 - Imports must be after env var setup
from collections.abc import AsyncGenerator, Generator

import pytest
from fakeredis import aioredis as fakeredis_aio
from redis.asyncio import Redis

from src.jupiter.core import redis as redis_core
from src.jupiter.core.audit_context import clear_audit_context
from src.jupiter.core.config import get_settings
from src.jupiter.core.locks import reset_local_locks
from src.jupiter.integrations.nationbuilder import NationBuilderConfig, NationBuilderOAuthClient

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_process_state() -> Generator[None]:
    """Fresh Redis state, in-process locks and audit context for every test."""
    redis_core.reset_redis_state()
    reset_local_locks()
    clear_audit_context()
    yield
    redis_core.reset_redis_state()
    reset_local_locks()
    clear_audit_context()


# --- Redis Test Fixtures (shared) ---


@pytest.fixture
async def fake_redis() -> AsyncGenerator[Redis]:
    """Provides a fakeredis client for testing.

    Returns an in-memory Redis implementation that behaves like
    a real Redis server but doesn't require external dependencies.
    """
    client = fakeredis_aio.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def mock_redis(fake_redis: Redis, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Redis]:
    """Patches get_redis() to return fakeredis client.

    Patches the lock module too, since it imports get_redis directly.
    """

    async def _get_fake_redis() -> Redis:
        return fake_redis

    monkeypatch.setattr("src.jupiter.core.redis.get_redis", _get_fake_redis)
    monkeypatch.setattr("src.jupiter.core.locks.get_redis", _get_fake_redis)
    yield fake_redis


# --- NationBuilder fixtures (shared) ---


@pytest.fixture
def nationbuilder_config() -> NationBuilderConfig:
    return NationBuilderConfig(
        nation_slug="testnation",
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:8000/api/v1/auth/nationbuilder/callback",
        timeout_seconds=5.0,
    )


@pytest.fixture
async def oauth_client(
    nationbuilder_config: NationBuilderConfig,
) -> AsyncGenerator[NationBuilderOAuthClient]:
    client = NationBuilderOAuthClient(nationbuilder_config)
    yield client
    await client.aclose()
