"""Merge and paginate items acquired from several sources."""

import base64
import binascii
import json
from typing import Sequence

from feedrelay.feeds.models import FeedItem


def make_cursor(item: FeedItem) -> str:
    """Create a base64-encoded cursor from a feed item.

    The cursor encodes the item's publication date and id.
    """
    blob = json.dumps({"t": item.pub_date, "i": item.id})
    return base64.urlsafe_b64encode(blob.encode()).decode()


def decode_cursor(cursor: str) -> tuple[str, str]:
    """Decode a cursor string back to (pub_date, id).

    Raises:
        ValueError: If the cursor is not one produced by ``make_cursor``
    """
    try:
        d = json.loads(base64.urlsafe_b64decode(cursor))
        return str(d["t"]), str(d["i"])
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise ValueError("Invalid cursor format") from e


def aggregate_items(
    feeds: Sequence[Sequence[FeedItem]],
    limit: int = 50,
    cursor: str | None = None,
) -> dict:
    """Aggregate several item lists into one newest-first page.

    This function:
    1. Flattens all lists, keeping the first item seen for each id
    2. Sorts by publication date descending, then id descending
    3. Applies cursor pagination (items strictly after the cursor position)
    4. Returns a page of items and a cursor for the next page

    Returns:
        A dict with:
            - "items": List of FeedItem objects for the current page
            - "next_cursor": Cursor string for the next page, or None
    """
    seen: set[str] = set()
    items: list[FeedItem] = []
    for feed in feeds:
        for item in feed:
            if item.id in seen:
                continue
            seen.add(item.id)
            items.append(item)

    # pub_date strings share one ISO format, so they sort chronologically
    items.sort(key=lambda i: (i.pub_date, i.id), reverse=True)

    if cursor:
        position = decode_cursor(cursor)
        items = [i for i in items if (i.pub_date, i.id) < position]

    page = items[:limit]
    next_cursor = make_cursor(page[-1]) if len(items) > limit else None

    return {"items": page, "next_cursor": next_cursor}
