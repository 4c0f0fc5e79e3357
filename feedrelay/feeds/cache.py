"""Time-bounded feed cache persisted in Redis.

One JSON blob per source URL under ``<namespace>:<sha256(url)>``. Entries
are stored without a Redis expiry: staleness is computed when an entry is
read, and a stale entry stays in place until the next ``put`` so it can be
served when every fetch attempt fails.
"""

import hashlib
import logging
import time
from collections.abc import Callable

from pydantic import ValidationError
from redis.asyncio import Redis

from feedrelay.feeds.models import CacheEntry, FeedItem

logger = logging.getLogger(__name__)


class FeedCache:
    """Redis-backed cache of canonical items keyed by source URL."""

    def __init__(
        self,
        redis: Redis,
        namespace: str = "feedrelay:feed",
        default_ttl_seconds: int = 1800,
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    def key(self, url: str) -> str:
        """Redis key for a source URL."""
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return f"{self.namespace}:{digest}"

    async def peek(self, url: str) -> CacheEntry | None:
        """Return the stored entry regardless of age, or None."""
        raw = await self.redis.get(self.key(url))
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable cache entry for {url}")
            return None

    async def get(self, url: str) -> CacheEntry | None:
        """Return a fresh entry, or None on a miss or when the entry is stale."""
        entry = await self.peek(url)
        if entry is None or entry.is_stale(self._clock()):
            return None
        return entry

    async def put(
        self, url: str, items: list[FeedItem], ttl_seconds: int | None = None
    ) -> CacheEntry:
        """Create or overwrite the entry for ``url``."""
        entry = CacheEntry(
            key=url,
            items=items,
            fetched_at=self._clock(),
            ttl_seconds=self.default_ttl_seconds if ttl_seconds is None else ttl_seconds,
        )
        await self.redis.set(self.key(url), entry.model_dump_json())
        return entry

    async def invalidate(self, url: str) -> bool:
        """Delete the entry for ``url``. Returns True if one existed."""
        return bool(await self.redis.delete(self.key(url)))

    async def clear(self) -> int:
        """Delete every entry in this cache's namespace. Returns the count."""
        deleted = 0
        async for key in self.redis.scan_iter(match=f"{self.namespace}:*"):
            deleted += await self.redis.delete(key)
        return deleted
