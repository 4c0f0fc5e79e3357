"""JSON protocol handler: JSON Feed, news-API articles, and bare arrays."""

import asyncio
import logging
from typing import Any

from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.fetch.validation import JSON_CONTENT_TYPES, parse_json, validate_content_type
from feedrelay.logging import payload_snippet
from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.shapes import JSON_SHAPES, Record, map_shape, match_shape

logger = logging.getLogger(__name__)


class JsonHandler(ProtocolHandler):
    """Handler for endpoints that return JSON documents."""

    protocol = "json"

    def __init__(self, fetcher: ResilientFetcher):
        self.fetcher = fetcher

    def is_supported(self, endpoint: str) -> bool:
        lowered = endpoint.lower()
        return lowered.endswith(".json") or "json" in lowered or "api" in lowered

    async def fetch_json(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Any:
        """Fetch, check the content-type, and decode a JSON body."""
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        response = await self.fetcher.fetch(
            endpoint, headers=request_headers, cancel=cancel
        )
        validate_content_type(response, JSON_CONTENT_TYPES, endpoint)
        return parse_json(response.text, endpoint)

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        return await self.fetch_json(endpoint, cancel=cancel)

    def parse_data(self, data: Any) -> list[Record]:
        shape = match_shape(data, JSON_SHAPES)
        if shape is None:
            logger.error(f"Unrecognized JSON structure: {payload_snippet(data)}")
            return []
        return map_shape(shape, data)
