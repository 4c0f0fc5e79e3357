"""IPFS content handler (via an HTTP gateway)."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.fetch.validation import looks_like_xml
from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.json_feed import JsonHandler
from feedrelay.protocols.rss import RssHandler
from feedrelay.protocols.shapes import Record

logger = logging.getLogger(__name__)

IPFS_SCHEME = "ipfs://"


@dataclass
class IpfsText:
    """A non-JSON body and the gateway URL it was served from."""

    text: str
    url: str


class IpfsHandler(ProtocolHandler):
    """Fetches IPFS-addressed content and parses it as JSON, RSS, or text."""

    protocol = "ipfs"

    def __init__(
        self,
        fetcher: ResilientFetcher,
        json_handler: JsonHandler,
        rss_handler: RssHandler,
        gateway: str = "https://ipfs.io/ipfs/",
    ):
        self.fetcher = fetcher
        self.json_handler = json_handler
        self.rss_handler = rss_handler
        self.gateway = gateway if gateway.endswith("/") else f"{gateway}/"

    def is_supported(self, endpoint: str) -> bool:
        return (
            endpoint.startswith(IPFS_SCHEME)
            or "ipfs.io" in endpoint
            or "/ipfs/" in endpoint
        )

    def gateway_url(self, endpoint: str) -> str:
        """Rewrite ``ipfs://<cid>`` to the configured HTTP gateway."""
        if endpoint.startswith(IPFS_SCHEME):
            return f"{self.gateway}{endpoint[len(IPFS_SCHEME):]}"
        return endpoint

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        url = self.gateway_url(endpoint)
        response = await self.fetcher.fetch(url, cancel=cancel)
        text = response.text
        try:
            return json.loads(text)
        except ValueError:
            # Not JSON; hand the body on as opaque text
            return IpfsText(text, url)

    def parse_data(self, data: Any) -> list[Record]:
        if isinstance(data, (dict, list)):
            return self.json_handler.parse_data(data)

        link = ""
        if isinstance(data, IpfsText):
            text, link = data.text, data.url
        else:
            text = data if isinstance(data, str) else str(data or "")
        if looks_like_xml(text):
            items = self.rss_handler.parse_data(text)
            if items:
                return items

        return [
            {
                "title": "IPFS Content",
                "link": link,
                "description": "Content retrieved from IPFS",
                "content": text,
                "categories": ["ipfs"],
            }
        ]
