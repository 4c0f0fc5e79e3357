"""Pydantic models for feed sources, canonical items, and cache entries."""

from pydantic import BaseModel, Field, field_validator

from feedrelay.fetch.models import FetchFailure

NO_TITLE = "No title"
NO_DESCRIPTION = "No description"


class FeedSource(BaseModel):
    """A fetchable origin. ``url`` doubles as the cache key."""

    url: str
    id: str = ""
    name: str = ""
    protocol_hint: str | None = None

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        return value


class FeedItem(BaseModel):
    """Canonical item every protocol handler converges to.

    ``title`` and ``link`` are never empty and ``pub_date`` is always an
    ISO-8601 UTC timestamp once an item has been through the normalizer.
    """

    id: str
    title: str = NO_TITLE
    link: str
    description: str = NO_DESCRIPTION
    pub_date: str
    content: str = ""
    author: str | None = None
    categories: list[str] = Field(default_factory=list)
    media: list[str] | None = None


class CacheEntry(BaseModel):
    """Items stored for one source URL."""

    key: str
    items: list[FeedItem]
    fetched_at: float
    ttl_seconds: int

    def is_stale(self, now: float) -> bool:
        return now - self.fetched_at > self.ttl_seconds


class AcquireResult(BaseModel):
    """What ``ResilienceContext.acquire`` hands back: items or a typed failure.

    On failure ``items`` holds the last good cached items (``stale=True``)
    when there are any, otherwise it is empty.
    """

    url: str
    source_id: str = ""
    items: list[FeedItem] = Field(default_factory=list)
    stale: bool = False
    from_cache: bool = False
    fetched_at: float | None = None
    error: FetchFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
