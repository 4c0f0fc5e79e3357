"""Shared fixtures for the feed relay test suite."""

from fnmatch import fnmatch
from unittest.mock import AsyncMock

import pytest
from redis.asyncio import Redis


@pytest.fixture
def fake_redis():
    """Create a mock Redis client backed by a dict.

    The backing dict is exposed as ``fake_redis.store``.
    """
    store: dict[str, bytes] = {}

    def _get(key):
        return store.get(key)

    def _set(key, value):
        store[key] = value.encode() if isinstance(value, str) else value
        return True

    def _delete(*keys):
        return sum(1 for key in keys if store.pop(key, None) is not None)

    async def _scan_iter(match="*"):
        for key in list(store):
            if fnmatch(key, match):
                yield key

    redis = AsyncMock(spec=Redis)
    redis.get = AsyncMock(side_effect=_get)
    redis.set = AsyncMock(side_effect=_set)
    redis.delete = AsyncMock(side_effect=_delete)
    redis.ping = AsyncMock(return_value=True)
    redis.scan_iter = _scan_iter
    redis.store = store
    return redis
