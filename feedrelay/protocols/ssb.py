"""Secure Scuttlebutt handler.

Resolving ``ssb://`` references needs a local SSB daemon, which this
service does not talk to yet. ``fetch_data`` returns one placeholder
message so SSB sources still show up in the item stream.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.shapes import Record

logger = logging.getLogger(__name__)

SSB_SCHEME = "ssb://"


class SsbHandler(ProtocolHandler):
    protocol = "ssb"

    def is_supported(self, endpoint: str) -> bool:
        return endpoint.startswith(SSB_SCHEME)

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        logger.warning(
            f"SSB handler returns placeholder content for {endpoint}; "
            "a local SSB peer is required for real messages"
        )
        author = endpoint.removeprefix(SSB_SCHEME).split("/")[0]
        return [
            {
                "title": "SSB Message",
                "content": "This is a placeholder for SSB content. SSB requires special handling.",
                "author": author,
            }
        ]

    def parse_data(self, data: Any) -> list[Record]:
        if not isinstance(data, list):
            return []
        records = []
        for message in data:
            if not isinstance(message, Mapping):
                continue
            author = message.get("author") or "unknown"
            records.append(
                {
                    "title": message.get("title") or f"Message from {author}",
                    "link": f"{SSB_SCHEME}{author}",
                    "description": message.get("content"),
                    "pub_date": message.get("timestamp"),
                    "content": message.get("content"),
                    "author": message.get("author"),
                    "categories": ["ssb"],
                }
            )
        return records
