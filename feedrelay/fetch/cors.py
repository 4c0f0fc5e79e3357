"""CORS strategy selection, relay service registry, and fallback chains.

A strategy names a technique for reaching an origin that does not allow
cross-origin reads. Each strategy owns an ordered list of relay or proxy
base URLs in the ``ServiceRegistry``. ``CORSStrategyResolver.fetch`` walks
the fallback chain for a protocol, trying every candidate of every
strategy in order until one returns a usable payload.

Configuration changes (``set_default_strategy``, ``register`` ...) replace
whole values synchronously, so concurrent acquisitions never see a
half-updated chain.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from feedrelay.config import Settings
from feedrelay.errors import FetchCancelled, FetchError, MalformedPayload, StrategyExhausted
from feedrelay.fetch.fetcher import ResilientFetcher
from feedrelay.fetch.models import CORSStrategy, FetchAttemptResult
from feedrelay.fetch.validation import (
    JSON_CONTENT_TYPES,
    XML_CONTENT_TYPES,
    parse_json,
    parse_xml,
    validate_content_type,
)
from feedrelay.logging import payload_snippet

logger = logging.getLogger(__name__)

# Order tried after the configured strategy for a protocol
DEFAULT_FALLBACK_ORDER = (
    CORSStrategy.RSS2JSON,
    CORSStrategy.SERVICE_WORKER,
    CORSStrategy.DIRECT,
)

# Strategies whose relays answer with an RSS-to-JSON document
JSON_RELAY_STRATEGIES = frozenset({CORSStrategy.RSS2JSON, CORSStrategy.JSONP})

JSONP_CALLBACK = "feedrelay_cb"
JSONP_PATTERN = re.compile(r"^\s*[\w$.]+\s*\((?P<body>.*)\)\s*;?\s*$", re.DOTALL)

# Names accepted for the service families in configuration and the HTTP API
FAMILY_ALIASES = {
    "rss2json": CORSStrategy.RSS2JSON,
    "jsonp": CORSStrategy.JSONP,
    "corsproxies": CORSStrategy.SERVICE_WORKER,
    "cors_proxies": CORSStrategy.SERVICE_WORKER,
    "proxy": CORSStrategy.SERVICE_WORKER,
    "extension": CORSStrategy.EXTENSION,
}


def resolve_strategy(name: str | CORSStrategy) -> CORSStrategy:
    """Map a strategy or family name to a ``CORSStrategy``.

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(name, CORSStrategy):
        return name
    key = name.strip()
    if key.upper() in CORSStrategy.__members__:
        return CORSStrategy[key.upper()]
    alias = FAMILY_ALIASES.get(key.lower())
    if alias is None:
        raise ValueError(f"Unknown CORS strategy or service family: {name}")
    return alias


def local_relay_url(proxy_url: str) -> str:
    """Build the candidate prefix for the local CORS relay process."""
    return f"{proxy_url.rstrip('/')}/proxy?url="


class ServiceRegistry:
    """Ordered relay/proxy base URLs per strategy.

    DIRECT never has services: its only candidate is the endpoint itself.
    """

    def __init__(self, services: dict[CORSStrategy, list[str]] | None = None):
        self._services: dict[CORSStrategy, tuple[str, ...]] = {
            strategy: () for strategy in CORSStrategy
        }
        for strategy, urls in (services or {}).items():
            self._services[resolve_strategy(strategy)] = tuple(dict.fromkeys(urls))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceRegistry":
        return cls(
            {
                CORSStrategy.RSS2JSON: list(settings.rss2json_services),
                CORSStrategy.JSONP: list(settings.jsonp_services),
                CORSStrategy.SERVICE_WORKER: [
                    local_relay_url(settings.proxy_url),
                    *settings.cors_proxies,
                ],
                CORSStrategy.EXTENSION: list(settings.extension_bridges),
            }
        )

    def services(self, strategy: CORSStrategy) -> list[str]:
        return list(self._services[strategy])

    def register(self, strategy: str | CORSStrategy, url: str) -> bool:
        """Append a service to a strategy's candidates.

        Returns:
            True if added, False if it was already registered

        Raises:
            ValueError: For DIRECT or an empty URL
        """
        strategy = resolve_strategy(strategy)
        url = url.strip()
        if strategy is CORSStrategy.DIRECT:
            raise ValueError("DIRECT strategy does not use relay services")
        if not url:
            raise ValueError("Service URL must not be empty")

        current = self._services[strategy]
        if url in current:
            return False
        self._services[strategy] = (*current, url)
        logger.info(f"Registered {strategy.value} service: {url}")
        return True

    def remove(self, strategy: str | CORSStrategy, url: str) -> bool:
        """Remove a service. Returns False if it was not registered."""
        strategy = resolve_strategy(strategy)
        current = self._services[strategy]
        if url not in current:
            return False
        self._services[strategy] = tuple(u for u in current if u != url)
        logger.info(f"Removed {strategy.value} service: {url}")
        return True

    def snapshot(self) -> dict[str, list[str]]:
        return {strategy.value: list(urls) for strategy, urls in self._services.items()}


@dataclass
class StrategyResult:
    """Payload obtained through the fallback chain plus the attempt trail."""

    payload: Any
    strategy: CORSStrategy
    candidate: str | None
    attempts: list[FetchAttemptResult] = field(default_factory=list)


class CORSStrategyResolver:
    """Chooses CORS strategies and executes them with ordered fallback."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        services: ServiceRegistry | None = None,
        default_strategy: CORSStrategy = CORSStrategy.RSS2JSON,
        overrides: dict[str, CORSStrategy] | None = None,
        attempts_per_candidate: int = 1,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.fetcher = fetcher
        self.services = services or ServiceRegistry()
        self._default = default_strategy
        self._overrides = {k.lower(): v for k, v in (overrides or {}).items()}
        self.attempts_per_candidate = attempts_per_candidate
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, fetcher: ResilientFetcher
    ) -> "CORSStrategyResolver":
        return cls(
            fetcher,
            ServiceRegistry.from_settings(settings),
            default_strategy=settings.default_cors_strategy,
            overrides=settings.protocol_strategy_overrides,
            attempts_per_candidate=settings.relay_attempts_per_candidate,
        )

    @property
    def default_strategy(self) -> CORSStrategy:
        return self._default

    @property
    def overrides(self) -> dict[str, CORSStrategy]:
        return dict(self._overrides)

    def strategy_for(self, protocol: str | None = None) -> CORSStrategy:
        """Active strategy for a protocol: its override, else the default."""
        if protocol:
            return self._overrides.get(protocol.lower(), self._default)
        return self._default

    def set_default_strategy(self, strategy: str | CORSStrategy) -> None:
        self._default = resolve_strategy(strategy)
        logger.info(f"Default CORS strategy set to {self._default.value}")

    def set_protocol_strategy(
        self, protocol: str, strategy: str | CORSStrategy | None
    ) -> None:
        """Override the strategy for one protocol; ``None`` restores the default."""
        overrides = dict(self._overrides)
        if strategy is None:
            overrides.pop(protocol.lower(), None)
        else:
            overrides[protocol.lower()] = resolve_strategy(strategy)
        self._overrides = overrides

    def fallback_chain(self, protocol: str | None = None) -> list[CORSStrategy]:
        """Active strategy first, then the default order without duplicates."""
        first = self.strategy_for(protocol)
        return [first, *(s for s in DEFAULT_FALLBACK_ORDER if s is not first)]

    def candidates_for(self, strategy: CORSStrategy) -> list[str]:
        """Ordered candidate base URLs for ``strategy``."""
        return self.services.services(strategy)

    def request_url(self, strategy: CORSStrategy, candidate: str, url: str) -> str:
        """Build the URL actually requested when reaching ``url`` via ``candidate``."""
        if strategy is CORSStrategy.DIRECT:
            return url
        target = candidate + quote(url, safe="")
        if strategy is CORSStrategy.JSONP:
            return f"{target}&callback={JSONP_CALLBACK}"
        return target

    async def fetch(
        self,
        url: str,
        protocol: str | None = None,
        expected: frozenset[str] = XML_CONTENT_TYPES,
        cancel: asyncio.Event | None = None,
    ) -> StrategyResult:
        """Fetch ``url`` through the protocol's fallback chain.

        Raises:
            StrategyExhausted: If every candidate of every strategy failed
        """
        report: list[FetchAttemptResult] = []

        for strategy in self.fallback_chain(protocol):
            for candidate in self._attempt_candidates(strategy, url):
                started = self._clock()
                try:
                    payload = await self._attempt(
                        url, strategy, candidate, expected, cancel=cancel
                    )
                except FetchCancelled:
                    raise
                except FetchError as e:
                    report.append(self._result(strategy, candidate, started, error=e))
                    logger.warning(
                        f"{strategy.value} via {candidate or 'direct'} failed for {url}: {e}"
                    )
                    continue

                report.append(self._result(strategy, candidate, started))
                return StrategyResult(payload, strategy, candidate or None, report)

        raise StrategyExhausted(
            f"Every CORS strategy failed for {url} ({len(report)} attempts)",
            url,
            report,
        )

    async def test_strategy(
        self,
        url: str,
        strategy: str | CORSStrategy,
        expected: frozenset[str] = XML_CONTENT_TYPES,
    ) -> FetchAttemptResult:
        """Fetch ``url`` through a single strategy and time it.

        Does not touch the active configuration.
        """
        strategy = resolve_strategy(strategy)
        started = self._clock()
        candidates = self._attempt_candidates(strategy, url)
        if not candidates:
            return self._result(
                strategy, None, started, error="No services registered for strategy"
            )

        last_error: FetchError | None = None
        for candidate in candidates:
            try:
                await self._attempt(url, strategy, candidate, expected)
            except FetchError as e:
                last_error = e
                continue
            return self._result(strategy, candidate, started)

        return self._result(strategy, candidates[-1], started, error=last_error)

    async def test_all_strategies(
        self, url: str, expected: frozenset[str] = XML_CONTENT_TYPES
    ) -> list[FetchAttemptResult]:
        """Run ``test_strategy`` for every known strategy, in enum order."""
        results = []
        for strategy in CORSStrategy:
            results.append(await self.test_strategy(url, strategy, expected))
        return results

    def _attempt_candidates(self, strategy: CORSStrategy, url: str) -> list[str]:
        if strategy is CORSStrategy.DIRECT:
            return [""]
        return self.candidates_for(strategy)

    async def _attempt(
        self,
        url: str,
        strategy: CORSStrategy,
        candidate: str,
        expected: frozenset[str],
        cancel: asyncio.Event | None = None,
    ) -> Any:
        request_url = self.request_url(strategy, candidate, url)
        response = await self.fetcher.fetch(
            request_url,
            max_retries=self.attempts_per_candidate,
            cancel=cancel,
        )

        if strategy is CORSStrategy.RSS2JSON:
            validate_content_type(response, JSON_CONTENT_TYPES, request_url)
            return check_relay_payload(parse_json(response.text, request_url), url)

        if strategy is CORSStrategy.JSONP:
            return check_relay_payload(unwrap_jsonp(response.text, request_url), url)

        validate_content_type(response, expected, request_url)
        if expected <= XML_CONTENT_TYPES:
            # A truncated or broken document fails the candidate
            parse_xml(response.text, request_url)
        return response.text

    def _result(
        self,
        strategy: CORSStrategy,
        candidate: str | None,
        started: float,
        error: Exception | str | None = None,
    ) -> FetchAttemptResult:
        return FetchAttemptResult(
            success=error is None,
            strategy=strategy,
            candidate=candidate or None,
            elapsed_ms=round((self._clock() - started) * 1000, 3),
            error=None if error is None else str(error),
        )


def unwrap_jsonp(text: str, url: str = "") -> Any:
    """Strip a ``callback(...)`` wrapper and decode the JSON inside.

    Bodies without a wrapper are decoded as plain JSON.
    """
    match = JSONP_PATTERN.match(text)
    body = match.group("body") if match else text
    return parse_json(body, url)


def check_relay_payload(data: Any, url: str = "") -> dict[str, Any]:
    """Validate an RSS-to-JSON relay reply (``{status, feed, items}``).

    Raises:
        MalformedPayload: If the relay reported an error or returned no items list
    """
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        raise MalformedPayload(
            "Relay reply has no items list", url, snippet=payload_snippet(data)
        )
    status = data.get("status", "ok")
    if status != "ok":
        raise MalformedPayload(
            f"Relay reported status {status!r}: {data.get('message', '')}",
            url,
            snippet=payload_snippet(data),
        )
    return data
