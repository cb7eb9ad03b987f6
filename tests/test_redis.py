"""
Tests for the Redis event-cache helpers.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from prosets.config import settings
from prosets.redis import RedisClient, redis_status


@pytest.mark.asyncio
async def test_status_without_client_is_disabled():
    assert await redis_status(None) == "disabled"


@pytest.mark.asyncio
async def test_status_reports_up_on_ping():
    client = AsyncMock()
    client.ping.return_value = True

    assert await redis_status(client) == "up"
    client.ping.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_reports_down_on_redis_error():
    client = AsyncMock()
    client.ping.side_effect = RedisConnectionError("connection refused")

    assert await redis_status(client) == "down"


def test_no_url_means_no_client(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", "")
    monkeypatch.setattr(RedisClient, "_client", None)

    assert RedisClient.get_client() is None
