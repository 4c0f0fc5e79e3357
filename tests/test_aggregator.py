"""Tests for multi-source aggregation and cursor pagination."""

from datetime import datetime, timezone

import pytest

from feedrelay.feeds import aggregate_items, decode_cursor, make_cursor
from feedrelay.feeds.models import FeedItem
from feedrelay.feeds.normalizer import format_timestamp


def make_item(item_id: str, published: datetime, link: str | None = None) -> FeedItem:
    """Helper to create a FeedItem for testing."""
    return FeedItem(
        id=item_id,
        title=f"Item {item_id}",
        link=link or f"https://example.com/{item_id}",
        pub_date=format_timestamp(published),
    )


class TestCursor:
    """Tests for cursor encoding and decoding."""

    def test_cursor_roundtrip(self):
        item = make_item("abc", datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc))

        pub_date, item_id = decode_cursor(make_cursor(item))

        assert pub_date == "2024-01-15T12:00:00.000Z"
        assert item_id == "abc"

    def test_cursor_deterministic(self):
        """Same item should produce same cursor."""
        dt = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        assert make_cursor(make_item("a", dt)) == make_cursor(make_item("a", dt))

    @pytest.mark.parametrize("cursor", ["not-base64!!", "bm90IGpzb24=", "e30="])
    def test_invalid_cursor(self, cursor):
        with pytest.raises(ValueError, match="Invalid cursor format"):
            decode_cursor(cursor)


class TestAggregateBasic:
    """Basic tests for aggregate_items."""

    def test_empty_feeds(self):
        result = aggregate_items([])
        assert result["items"] == []
        assert result["next_cursor"] is None

    def test_multiple_feeds_merge_and_sort(self):
        """Items from all sources come back newest first."""
        feed1 = [
            make_item("a1", datetime(2024, 1, 15, tzinfo=timezone.utc)),
            make_item("a2", datetime(2024, 1, 16, tzinfo=timezone.utc)),
        ]
        feed2 = [
            make_item("b1", datetime(2024, 1, 14, tzinfo=timezone.utc)),
            make_item("b2", datetime(2024, 1, 17, tzinfo=timezone.utc)),
        ]

        result = aggregate_items([feed1, feed2], limit=10)

        assert [i.id for i in result["items"]] == ["b2", "a2", "a1", "b1"]

    def test_duplicate_ids_are_kept_once(self):
        dt = datetime(2024, 1, 15, tzinfo=timezone.utc)
        feed1 = [make_item("same", dt, link="https://first.example.com")]
        feed2 = [make_item("same", dt, link="https://second.example.com")]

        result = aggregate_items([feed1, feed2])

        assert len(result["items"]) == 1
        assert result["items"][0].link == "https://first.example.com"

    def test_shared_fallback_links_are_not_merged(self):
        """Items whose link fell back to the source URL stay distinct."""
        dt = datetime(2024, 1, 15, tzinfo=timezone.utc)
        feed = [
            make_item("x1", dt, link="https://example.com/feed"),
            make_item("x2", dt, link="https://example.com/feed"),
        ]

        assert len(aggregate_items([feed])["items"]) == 2


class TestPagination:
    """Tests for cursor-based pagination."""

    def test_pagination_basic(self):
        items = [
            make_item(f"item{i}", datetime(2024, 1, i + 1, 12, tzinfo=timezone.utc))
            for i in range(5)
        ]

        result = aggregate_items([items], limit=2)
        assert [i.id for i in result["items"]] == ["item4", "item3"]
        assert result["next_cursor"] is not None

        result = aggregate_items([items], limit=2, cursor=result["next_cursor"])
        assert [i.id for i in result["items"]] == ["item2", "item1"]

        result = aggregate_items([items], limit=2, cursor=result["next_cursor"])
        assert [i.id for i in result["items"]] == ["item0"]
        assert result["next_cursor"] is None

    def test_no_next_cursor_when_exact_limit(self):
        items = [
            make_item(f"item{i}", datetime(2024, 1, i + 1, tzinfo=timezone.utc))
            for i in range(3)
        ]

        result = aggregate_items([items], limit=3)

        assert len(result["items"]) == 3
        assert result["next_cursor"] is None

    def test_same_timestamp_different_ids(self):
        """Ties on pub_date are broken by id so pages never overlap."""
        dt = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        items = [make_item("a", dt), make_item("b", dt), make_item("c", dt)]

        page1 = aggregate_items([items], limit=2)
        page2 = aggregate_items([items], limit=2, cursor=page1["next_cursor"])

        ids = [i.id for i in page1["items"] + page2["items"]]
        assert ids == ["c", "b", "a"]

    def test_large_feed_pagination(self):
        items = [
            make_item(
                f"item{i:03d}",
                datetime(2024, 1, 1, i % 24, tzinfo=timezone.utc),
            )
            for i in range(100)
        ]

        seen = []
        cursor = None
        for _ in range(20):
            result = aggregate_items([items], limit=10, cursor=cursor)
            seen.extend(result["items"])
            cursor = result["next_cursor"]
            if cursor is None:
                break

        assert len(seen) == 100
        assert len({i.id for i in seen}) == 100
