"""FastAPI dependencies for API routers."""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis

from feedrelay.config import get_settings
from feedrelay.context import ResilienceContext

_redis_client: Redis | None = None
_context: ResilienceContext | None = None


async def get_redis() -> AsyncGenerator[Redis, None]:
    """Dependency for FastAPI routes to get an async Redis connection.

    Yields:
        Async Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )

    yield _redis_client


def get_context() -> ResilienceContext:
    """Dependency returning the process-wide ResilienceContext.

    Built lazily on first use from settings and the shared Redis client.
    """
    global _context, _redis_client

    if _context is None:
        settings = get_settings()
        if _redis_client is None:
            _redis_client = Redis.from_url(
                settings.redis_url, encoding="utf-8", decode_responses=False
            )
        _context = ResilienceContext.from_settings(settings, _redis_client)

    return _context
