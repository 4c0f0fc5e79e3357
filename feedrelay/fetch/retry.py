"""Retry combinator with linear backoff and per-attempt timeout."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from feedrelay.errors import FetchCancelled, FetchExhausted, NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(initial_backoff_ms: int, attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return initial_backoff_ms * attempt / 1000


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    url: str = "",
    max_retries: int = 3,
    initial_backoff_ms: int = 300,
    timeout: float | None = None,
    cancel: asyncio.Event | None = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``max_retries`` attempts fail.

    Only ``NetworkError`` and timeouts are retried. Any other exception
    (for example a content-type mismatch) propagates immediately. Between
    attempts the combinator waits ``initial_backoff_ms * attempt``.

    Args:
        operation: Zero-argument coroutine factory performing one attempt
        url: Target URL, used for error reporting
        max_retries: Total number of attempts allowed
        initial_backoff_ms: Base delay for the linear backoff
        timeout: Per-attempt timeout in seconds, ``None`` for no limit
        cancel: Optional cancellation token checked before every attempt
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        The result of the first successful attempt

    Raises:
        FetchExhausted: If every attempt failed
        FetchCancelled: If ``cancel`` was set
    """
    last_error: Exception | None = None

    for attempt in range(1, max_retries + 1):
        if cancel is not None and cancel.is_set():
            raise FetchCancelled(f"Fetch of {url} cancelled", url)

        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = NetworkError(f"Timed out after {timeout}s", url)
        except NetworkError as e:
            last_error = e

        logger.warning(
            f"Attempt {attempt}/{max_retries} for {url} failed: {last_error}"
        )

        if attempt < max_retries:
            await sleep(backoff_delay(initial_backoff_ms, attempt))

    raise FetchExhausted(
        f"All {max_retries} attempts failed for {url}: {last_error}",
        url,
        attempts=max_retries,
        last_error=last_error,
    )
