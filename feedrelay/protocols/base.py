"""Abstract protocol handler interface."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any


class ProtocolHandler(ABC):
    """Recognizes, fetches, and parses one family of feed source.

    Handlers are stateless apart from injected collaborators, so a single
    instance serves every acquisition.
    """

    #: Protocol name used for strategy overrides and protocol hints
    protocol: str = ""

    @abstractmethod
    def is_supported(self, endpoint: str) -> bool:
        """Return True if this handler recognizes the endpoint."""
        pass

    @abstractmethod
    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        """
        Retrieve the raw payload for an endpoint.

        Args:
            endpoint: Source URL
            cancel: Optional cancellation token

        Returns:
            Raw payload (decoded JSON, XML text, ...) for ``parse_data``

        Raises:
            FetchError: On network, content-type, or structural failures
        """
        pass

    @abstractmethod
    def parse_data(self, data: Any) -> list[dict[str, Any]]:
        """
        Turn a raw payload into item records with canonical field names.

        Never raises on malformed input: logs and returns an empty list.
        """
        pass
