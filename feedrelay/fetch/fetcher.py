"""HTTP fetcher with retries, linear backoff, and status validation."""

import asyncio
import logging

import httpx

from feedrelay.errors import NetworkError
from feedrelay.fetch.retry import Sleep, retry_with_backoff

logger = logging.getLogger(__name__)

USER_AGENT = "feedrelay/1.0 (+https://github.com/feedrelay/feedrelay)"


class ResilientFetcher:
    """Performs GET requests that survive flaky networks.

    A non-2xx response, a transport error, or a timeout counts as a failed
    attempt. Attempts are retried through ``retry_with_backoff`` and surface
    as ``FetchExhausted`` once the retry budget is spent. Content-type and
    body validation are the caller's job and are never retried.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 3,
        initial_backoff_ms: int = 300,
        timeout: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the fetcher.

        Args:
            client: Shared httpx client; a short-lived one is opened per call if None
            max_retries: Default number of attempts per request
            initial_backoff_ms: Default base delay for linear backoff
            timeout: Per-attempt timeout in seconds
            sleep: Awaitable sleep used between attempts
        """
        self._client = client
        self.max_retries = max_retries
        self.initial_backoff_ms = initial_backoff_ms
        self.timeout = timeout
        self._sleep = sleep

    async def fetch(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        max_retries: int | None = None,
        initial_backoff_ms: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> httpx.Response:
        """Fetch ``url`` and return the first successful (2xx) response.

        Raises:
            FetchExhausted: If all attempts failed
            FetchCancelled: If ``cancel`` was set
        """
        request_headers = {"User-Agent": USER_AGENT}
        if headers:
            request_headers.update(headers)

        async def attempt() -> httpx.Response:
            return await self._get(url, request_headers)

        return await retry_with_backoff(
            attempt,
            url=url,
            max_retries=self.max_retries if max_retries is None else max_retries,
            initial_backoff_ms=(
                self.initial_backoff_ms
                if initial_backoff_ms is None
                else initial_backoff_ms
            ),
            timeout=self.timeout,
            cancel=cancel,
            sleep=self._sleep,
        )

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout, follow_redirects=True
                ) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {url} failed: {e}", url) from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"HTTP error! status: {response.status_code}",
                url,
                status_code=response.status_code,
            )
        return response
