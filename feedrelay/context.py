"""Acquisition boundary: registry, CORS resolver, fetcher, and cache together.

``ResilienceContext`` is built once per process and handed to whoever needs
feeds. It is the only place where fetch errors turn into ``FetchFailure``
records, and where the serve-stale-on-failure policy lives.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from redis.asyncio import Redis

from feedrelay.config import Settings
from feedrelay.errors import FetchError, MalformedPayload
from feedrelay.feeds.cache import FeedCache
from feedrelay.feeds.models import AcquireResult, FeedSource
from feedrelay.feeds.normalizer import normalize_items
from feedrelay.fetch.cors import CORSStrategyResolver
from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.fetch.models import CORSStrategy, FetchAttemptResult
from feedrelay.fetch.validation import parse_xml
from feedrelay.logging import payload_snippet
from feedrelay.protocols.registry import ProtocolRegistry, build_registry

logger = logging.getLogger(__name__)


def _is_empty_payload(raw: Any) -> bool:
    """True when a payload legitimately carries no entries.

    Well-formed XML with no items and JSON with an empty items list qualify.
    Anything else that yields no items is treated as malformed.
    """
    if raw is None:
        return True
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            return True
        try:
            parse_xml(raw)
        except MalformedPayload:
            return False
        return True
    if isinstance(raw, list):
        return not raw
    if isinstance(raw, Mapping):
        for key in ("items", "articles"):
            if isinstance(raw.get(key), list):
                return not raw[key]
        return not raw
    return False


class ResilienceContext:
    """Turns feed sources into canonical items despite unreliable networks."""

    def __init__(
        self,
        registry: ProtocolRegistry,
        resolver: CORSStrategyResolver,
        fetcher: ResilientFetcher,
        cache: FeedCache,
        cache_ttl_seconds: int = 1800,
        max_concurrency: int = 8,
    ):
        self.registry = registry
        self.resolver = resolver
        self.fetcher = fetcher
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        redis: Redis,
        client: httpx.AsyncClient | None = None,
    ) -> "ResilienceContext":
        """Wire up the standard collaborators from configuration."""
        fetcher = ResilientFetcher(
            client=client,
            max_retries=settings.max_retries,
            initial_backoff_ms=settings.initial_backoff_ms,
            timeout=settings.request_timeout_seconds,
        )
        resolver = CORSStrategyResolver.from_settings(settings, fetcher)
        cache = FeedCache(
            redis,
            namespace=settings.cache_namespace,
            default_ttl_seconds=settings.cache_duration_seconds,
        )
        return cls(
            registry=build_registry(settings, fetcher, resolver),
            resolver=resolver,
            fetcher=fetcher,
            cache=cache,
            cache_ttl_seconds=settings.cache_duration_seconds,
            max_concurrency=settings.max_concurrent_fetches,
        )

    async def acquire(
        self,
        source: FeedSource,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> AcquireResult:
        """
        Return canonical items for a source, or a typed failure.

        Flow: fresh cache entry -> handler fetch -> parse -> normalize -> cache.
        When fetching or parsing fails, the last cached items are returned marked stale.

        Args:
            source: The source to acquire
            force_refresh: Skip the fresh-cache check
            cancel: Optional cancellation token for the underlying fetches

        Returns:
            AcquireResult with items, staleness, and an error when acquisition failed
        """
        url = source.url

        if not force_refresh:
            entry = await self.cache.get(url)
            if entry is not None:
                return AcquireResult(
                    url=url,
                    source_id=source.id,
                    items=entry.items,
                    from_cache=True,
                    fetched_at=entry.fetched_at,
                )

        handler = self.registry.handler_for(url, source.protocol_hint)

        try:
            raw = await handler.fetch_data(url, cancel=cancel)
        except FetchError as e:
            logger.error(f"Failed to fetch {url} with {handler.protocol} handler: {e}")
            return await self._fallback(source, e)

        try:
            items = normalize_items(handler.parse_data(raw), source)
        except MalformedPayload as e:
            logger.error(f"Malformed payload from {url}: {e} | payload: {e.snippet}")
            return await self._fallback(source, e)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            error = MalformedPayload(
                f"Could not parse payload from {url}: {e}", url, snippet=payload_snippet(raw)
            )
            logger.error(f"{error.message} | payload: {error.snippet}")
            return await self._fallback(source, error)

        if not items:
            if not _is_empty_payload(raw):
                error = MalformedPayload(
                    f"No items could be parsed from {url}", url, snippet=payload_snippet(raw)
                )
                logger.error(f"{error.message} | payload: {error.snippet}")
                return await self._fallback(source, error)
            logger.warning(f"No items parsed from {url}; cache left untouched")
            return AcquireResult(url=url, source_id=source.id)

        entry = await self.cache.put(url, items, self.cache_ttl_seconds)
        logger.info(f"Acquired {len(items)} items from {url} ({handler.protocol})")
        return AcquireResult(
            url=url,
            source_id=source.id,
            items=items,
            fetched_at=entry.fetched_at,
        )

    async def acquire_many(
        self, sources: Sequence[FeedSource], force_refresh: bool = False
    ) -> list[AcquireResult]:
        """Acquire several sources concurrently, at most ``max_concurrency`` at once."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(source: FeedSource) -> AcquireResult:
            async with semaphore:
                return await self.acquire(source, force_refresh=force_refresh)

        return list(await asyncio.gather(*(bounded(s) for s in sources)))

    async def _fallback(self, source: FeedSource, error: FetchError) -> AcquireResult:
        failure = error.to_failure()
        entry = await self.cache.peek(source.url)
        if entry is None:
            return AcquireResult(url=source.url, source_id=source.id, error=failure)

        logger.warning(f"Serving stale cache for {source.url} after fetch failure")
        return AcquireResult(
            url=source.url,
            source_id=source.id,
            items=entry.items,
            stale=True,
            from_cache=True,
            fetched_at=entry.fetched_at,
            error=failure,
        )

    async def test_all_strategies(self, url: str) -> list[FetchAttemptResult]:
        """Try every CORS strategy against ``url`` without changing config."""
        return await self.resolver.test_all_strategies(url)

    async def invalidate_cache(self, url: str) -> bool:
        return await self.cache.invalidate(url)

    def register_relay_service(self, strategy: str | CORSStrategy, url: str) -> bool:
        return self.resolver.services.register(strategy, url)

    def remove_relay_service(self, strategy: str | CORSStrategy, url: str) -> bool:
        return self.resolver.services.remove(strategy, url)
