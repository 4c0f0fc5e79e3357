"""Authenticated REST API handler."""

import asyncio
from typing import Any

from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.json_feed import JsonHandler
from feedrelay.protocols.shapes import Record


class ApiHandler(ProtocolHandler):
    """JSON handler that attaches a bearer token when one is configured.

    Parsing and the actual request are delegated to a wrapped ``JsonHandler``.
    """

    protocol = "api"

    def __init__(self, json_handler: JsonHandler, api_key: str = ""):
        self.json_handler = json_handler
        self._api_key = api_key

    def is_supported(self, endpoint: str) -> bool:
        lowered = endpoint.lower()
        return "api" in lowered and "rss" not in lowered and "atom" not in lowered

    def auth_headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        return await self.json_handler.fetch_json(
            endpoint, headers=self.auth_headers(), cancel=cancel
        )

    def parse_data(self, data: Any) -> list[Record]:
        return self.json_handler.parse_data(data)
