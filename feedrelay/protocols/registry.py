"""Ordered protocol handler registry."""

import logging
from collections.abc import Sequence

from feedrelay.config import Settings
from feedrelay.fetch.cors import CORSStrategyResolver
from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.protocols.api import ApiHandler
from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.ipfs import IpfsHandler
from feedrelay.protocols.json_feed import JsonHandler
from feedrelay.protocols.mastodon import MastodonHandler
from feedrelay.protocols.rss import RssHandler
from feedrelay.protocols.ssb import SsbHandler

logger = logging.getLogger(__name__)


class ProtocolRegistry:
    """Picks the handler for an endpoint.

    Handlers are checked in order and the first whose ``is_supported``
    accepts the endpoint wins, so handlers with distinctive URL shapes must
    come before generic ones. Unmatched endpoints fall back to ``default``.
    """

    def __init__(self, handlers: Sequence[ProtocolHandler], default: ProtocolHandler):
        self._handlers = tuple(handlers)
        self._by_protocol = {h.protocol: h for h in self._handlers}
        self.default = default

    @property
    def handlers(self) -> tuple[ProtocolHandler, ...]:
        return self._handlers

    def by_protocol(self, protocol: str) -> ProtocolHandler | None:
        return self._by_protocol.get(protocol.lower())

    def handler_for(
        self, endpoint: str, protocol_hint: str | None = None
    ) -> ProtocolHandler:
        """Return the handler for ``endpoint``.

        A ``protocol_hint`` naming a registered protocol takes precedence
        over URL matching.
        """
        if protocol_hint:
            hinted = self.by_protocol(protocol_hint)
            if hinted is not None:
                return hinted
            logger.warning(f"Unknown protocol hint {protocol_hint!r} for {endpoint}")

        for handler in self._handlers:
            if handler.is_supported(endpoint):
                return handler

        logger.warning(
            f"No handler found for endpoint: {endpoint}, using {self.default.protocol}"
        )
        return self.default


def build_registry(
    settings: Settings, fetcher: ResilientFetcher, resolver: CORSStrategyResolver
) -> ProtocolRegistry:
    """Create the standard registry.

    Order: IPFS, Mastodon, SSB, RSS, API, JSON.
    """
    rss = RssHandler(resolver)
    json_handler = JsonHandler(fetcher)
    handlers = [
        IpfsHandler(fetcher, json_handler, rss, gateway=settings.ipfs_gateway),
        MastodonHandler(fetcher),
        SsbHandler(),
        rss,
        ApiHandler(json_handler, api_key=settings.api_key),
        json_handler,
    ]
    return ProtocolRegistry(handlers, default=rss)
