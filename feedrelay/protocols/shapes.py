"""Typed matchers for the JSON payload shapes sources send.

Each ``ShapeMatcher`` pairs a predicate with a mapper producing item
records that use canonical field names. Handlers try an ordered tuple of
matchers and use the first whose predicate accepts the payload.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
import logging
from typing import Any

from feedrelay.logging import payload_snippet

logger = logging.getLogger(__name__)

Record = dict[str, Any]


@dataclass(frozen=True)
class ShapeMatcher:
    name: str
    predicate: Callable[[Any], bool]
    mapper: Callable[[Any], list[Record]]

    def matches(self, data: Any) -> bool:
        return self.predicate(data)

    def map(self, data: Any) -> list[Record]:
        return self.mapper(data)


def _objects(entries: Any) -> list[Mapping[str, Any]]:
    if not isinstance(entries, (list, tuple)):
        return []
    return [entry for entry in entries if isinstance(entry, Mapping)]


def _first(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value not in (None, "", []):
            return value
    return None


def _author_name(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("name")
    if isinstance(value, list) and value:
        return _author_name(value[0])
    return value


# JSON Feed (https://jsonfeed.org/)
def _json_feed_item(item: Mapping[str, Any]) -> Record:
    attachments = [a.get("url") for a in _objects(item.get("attachments") or [])]
    return {
        "id": item.get("id"),
        "title": item.get("title"),
        "link": _first(item, "url", "external_url"),
        "description": item.get("summary"),
        "pub_date": _first(item, "date_published", "date_modified"),
        "content": _first(item, "content_html", "content_text", "summary"),
        "author": _author_name(_first(item, "authors", "author")),
        "categories": item.get("tags") or [],
        "media": [m for m in (item.get("image"), item.get("banner_image"), *attachments) if m],
    }


# News-API style {"status": "ok", "articles": [...]}
def _article(article: Mapping[str, Any]) -> Record:
    source = article.get("source")
    return {
        "title": article.get("title"),
        "link": article.get("url"),
        "description": article.get("description"),
        "pub_date": article.get("publishedAt"),
        "content": _first(article, "content", "description"),
        "author": article.get("author"),
        "categories": article.get("categories")
        or ([source["name"]] if isinstance(source, Mapping) and source.get("name") else []),
        "media": [article["urlToImage"]] if article.get("urlToImage") else None,
    }


# Loosely structured arrays of item-like objects
def _bare_item(item: Mapping[str, Any]) -> Record:
    return {
        "id": _first(item, "id", "guid"),
        "title": _first(item, "title", "name"),
        "link": _first(item, "url", "link"),
        "description": _first(item, "description", "summary"),
        "pub_date": _first(item, "pubDate", "pub_date", "date", "published", "created_at"),
        "content": _first(item, "content", "body", "description"),
        "author": _author_name(item.get("author")),
        "categories": _first(item, "categories", "tags") or [],
        "media": _first(item, "media", "image", "thumbnail"),
    }


# RSS-to-JSON relay items ({status, items}, usually with a feed block)
def _relay_item(item: Mapping[str, Any]) -> Record:
    enclosure = item.get("enclosure")
    enclosure_link = enclosure.get("link") if isinstance(enclosure, Mapping) else None
    return {
        "id": item.get("guid"),
        "title": item.get("title"),
        "link": item.get("link"),
        "description": item.get("description"),
        "pub_date": item.get("pubDate"),
        "content": _first(item, "content", "description"),
        "author": item.get("author"),
        "categories": item.get("categories") or [],
        "media": [m for m in (item.get("thumbnail"), enclosure_link) if m],
    }


JSON_FEED = ShapeMatcher(
    "json_feed",
    lambda data: isinstance(data, Mapping) and isinstance(data.get("items"), list),
    lambda data: [_json_feed_item(i) for i in _objects(data["items"])],
)

NEWS_API = ShapeMatcher(
    "news_api",
    lambda data: isinstance(data, Mapping) and isinstance(data.get("articles"), list),
    lambda data: [_article(a) for a in _objects(data["articles"])],
)

BARE_ARRAY = ShapeMatcher(
    "bare_array",
    lambda data: isinstance(data, list),
    lambda data: [_bare_item(i) for i in _objects(data)],
)

RELAY_FEED = ShapeMatcher(
    "relay_feed",
    lambda data: isinstance(data, Mapping) and isinstance(data.get("items"), list),
    lambda data: [_relay_item(i) for i in _objects(data["items"])],
)

# Items already in (roughly) canonical form, e.g. from a relay array
ITEM_ARRAY = ShapeMatcher(
    "item_array",
    lambda data: isinstance(data, list)
    and bool(data)
    and isinstance(data[0], Mapping)
    and any(data[0].get(k) for k in ("title", "name", "id")),
    lambda data: [_bare_item(i) for i in _objects(data)],
)

JSON_SHAPES = (JSON_FEED, NEWS_API, BARE_ARRAY)
RSS_JSON_SHAPES = (ITEM_ARRAY, RELAY_FEED)


def match_shape(data: Any, shapes: Sequence[ShapeMatcher]) -> ShapeMatcher | None:
    """Return the first matcher accepting ``data``, or None."""
    for shape in shapes:
        if shape.matches(data):
            return shape
    return None


def map_shape(shape: ShapeMatcher, data: Any) -> list[Record]:
    """Run ``shape``'s mapper. Oddly typed fields yield [] and an error log."""
    try:
        return shape.map(data)
    except (TypeError, ValueError, AttributeError, KeyError) as e:
        logger.error(
            f"Could not map {shape.name} payload: {e} | payload: {payload_snippet(data)}"
        )
        return []
