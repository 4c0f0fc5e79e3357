"""Canonical feed items, normalization, caching, and aggregation."""

from .aggregator import aggregate_items, decode_cursor, make_cursor
from .models import AcquireResult, CacheEntry, FeedItem, FeedSource
from .normalizer import normalize_item, normalize_items

__all__ = [
    "AcquireResult",
    "CacheEntry",
    "FeedItem",
    "FeedSource",
    "aggregate_items",
    "decode_cursor",
    "make_cursor",
    "normalize_item",
    "normalize_items",
]
