"""Reconcile handler output into canonical ``FeedItem`` objects.

Handlers return lists of dicts that use the canonical field names but may
leave fields blank, use odd date formats, or omit ids. ``normalize_items``
fills the gaps and enforces the item invariants. Running it over items it
already produced returns equal items.
"""

import hashlib
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from feedrelay.feeds.models import NO_DESCRIPTION, NO_TITLE, FeedItem, FeedSource

logger = logging.getLogger(__name__)


def format_timestamp(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601, RFC 822, epoch numbers, or datetimes. None if unparsable."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def normalize_pub_date(value: Any, now: datetime) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return format_timestamp(now)
    return format_timestamp(parsed)


def stable_id(source_url: str, title: str, index: int) -> str:
    """Cache-stable id from the source URL and title, or the item index."""
    if title and title != NO_TITLE:
        basis = f"{source_url}\n{title}"
    else:
        basis = f"{source_url}\n#{index}"
    return hashlib.sha256(basis.encode("utf-8")).hexdigest()[:16]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _categories(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    names = []
    for entry in value:
        if isinstance(entry, Mapping):
            entry = entry.get("name") or entry.get("term") or entry.get("label")
        name = _text(entry)
        if name:
            names.append(name)
    return list(dict.fromkeys(names))


def _media(value: Any) -> list[str] | None:
    if not value:
        return None
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    refs = []
    for entry in value:
        if isinstance(entry, Mapping):
            entry = entry.get("url") or entry.get("link") or entry.get("href")
        ref = _text(entry)
        if ref:
            refs.append(ref)
    return list(dict.fromkeys(refs)) or None


def normalize_item(
    raw: Mapping[str, Any] | FeedItem,
    source: FeedSource,
    index: int = 0,
    now: datetime | None = None,
) -> FeedItem:
    """Build a canonical item from one handler record."""
    if isinstance(raw, FeedItem):
        raw = raw.model_dump()
    now = now or datetime.now(timezone.utc)

    title = _text(raw.get("title")) or NO_TITLE
    description = _text(raw.get("description")) or NO_DESCRIPTION
    content = _text(raw.get("content")) or (
        description if description != NO_DESCRIPTION else ""
    )
    pub_date = raw.get("pub_date", raw.get("pubDate"))

    return FeedItem(
        id=_text(raw.get("id")) or stable_id(source.url, title, index),
        title=title,
        link=_text(raw.get("link")) or source.url,
        description=description,
        pub_date=normalize_pub_date(pub_date, now),
        content=content,
        author=_text(raw.get("author")) or None,
        categories=_categories(raw.get("categories")),
        media=_media(raw.get("media")),
    )


def normalize_items(
    raw_items: Iterable[Mapping[str, Any] | FeedItem],
    source: FeedSource,
    now: datetime | None = None,
) -> list[FeedItem]:
    """Normalize a handler's parse output for ``source``.

    Entries that are not mappings are skipped with a warning.
    """
    now = now or datetime.now(timezone.utc)
    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, (Mapping, FeedItem)):
            logger.warning(f"Skipping non-object item #{index} from {source.url}")
            continue
        items.append(normalize_item(raw, source, index, now))
    return items
