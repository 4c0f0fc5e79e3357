"""Mastodon public timeline handler."""

import asyncio
import html
import logging
import re
from collections.abc import Mapping
from typing import Any

from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.fetch.validation import JSON_CONTENT_TYPES, parse_json, validate_content_type
from feedrelay.logging import payload_snippet
from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.shapes import Record

logger = logging.getLogger(__name__)

PUBLIC_TIMELINE_PATH = "api/v1/timelines/public"

TAG_PATTERN = re.compile(r"<[^>]+>")
BLOCK_BREAK_PATTERN = re.compile(r"<\s*(br|/p)\s*/?>", re.IGNORECASE)


def strip_html(text: str) -> str:
    """Remove HTML tags and decode entities, collapsing whitespace."""
    if not text:
        return ""
    clean = BLOCK_BREAK_PATTERN.sub(" ", text)
    clean = TAG_PATTERN.sub("", clean)
    return " ".join(html.unescape(clean).split())


def timeline_url(endpoint: str) -> str:
    """Turn an instance base URL into its public timeline endpoint.

    URLs that already point at the REST API are returned unchanged.
    """
    if "/api/" in endpoint:
        return endpoint
    return f"{endpoint.rstrip('/')}/{PUBLIC_TIMELINE_PATH}"


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def status_to_record(status: Mapping[str, Any]) -> Record:
    account = status.get("account")
    if not isinstance(account, Mapping):
        account = {}
    author = account.get("display_name") or account.get("username") or ""
    content = status.get("content")
    if not isinstance(content, str):
        content = ""
    return {
        "id": status.get("id"),
        "title": author,
        "link": status.get("url") or status.get("uri"),
        "description": strip_html(content),
        "pub_date": status.get("created_at"),
        "content": content,
        "author": author or None,
        "categories": [
            tag.get("name") for tag in _list(status.get("tags")) if isinstance(tag, Mapping)
        ],
        "media": [
            a.get("url")
            for a in _list(status.get("media_attachments"))
            if isinstance(a, Mapping) and a.get("url")
        ],
    }


class MastodonHandler(ProtocolHandler):
    """Maps Mastodon statuses ("toots") to item records."""

    protocol = "mastodon"

    def __init__(self, fetcher: ResilientFetcher):
        self.fetcher = fetcher

    def is_supported(self, endpoint: str) -> bool:
        return (
            "mastodon" in endpoint
            or ".social/" in endpoint
            or "timelines" in endpoint
        )

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        url = timeline_url(endpoint)
        response = await self.fetcher.fetch(
            url, headers={"Accept": "application/json"}, cancel=cancel
        )
        validate_content_type(response, JSON_CONTENT_TYPES, url)
        return parse_json(response.text, url)

    def parse_data(self, data: Any) -> list[Record]:
        if not isinstance(data, list):
            logger.error(f"Expected a list of statuses: {payload_snippet(data)}")
            return []
        return [status_to_record(s) for s in data if isinstance(s, Mapping)]
