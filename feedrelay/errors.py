"""Error taxonomy for feed acquisition.

Every failure raised below the acquisition boundary is a ``FetchError``.
``ResilienceContext.acquire`` converts them into ``FetchFailure`` models so
callers never see an unhandled exception for network or payload trouble.
"""

from feedrelay.fetch.models import FetchAttemptResult, FetchFailure


class FetchError(Exception):
    """Base class for acquisition failures."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.message = message
        self.url = url

    @property
    def kind(self) -> str:
        return type(self).__name__

    def attempt_report(self) -> list[FetchAttemptResult]:
        return []

    def to_failure(self) -> FetchFailure:
        """Convert the exception into a serializable failure record."""
        return FetchFailure(
            kind=self.kind,
            message=self.message,
            url=self.url,
            attempts=self.attempt_report(),
        )


class NetworkError(FetchError):
    """Transport failure, timeout, or non-2xx HTTP status."""

    def __init__(self, message: str, url: str = "", status_code: int | None = None):
        super().__init__(message, url)
        self.status_code = status_code


class FetchExhausted(FetchError):
    """Raised when every retry of a request has failed."""

    def __init__(
        self,
        message: str,
        url: str = "",
        attempts: int = 0,
        last_error: Exception | None = None,
    ):
        super().__init__(message, url)
        self.attempts = attempts
        self.last_error = last_error


class StrategyExhausted(FetchExhausted):
    """Raised when every candidate in a CORS fallback chain has failed."""

    def __init__(self, message: str, url: str, report: list[FetchAttemptResult]):
        super().__init__(message, url, attempts=len(report))
        self.report = report

    def attempt_report(self) -> list[FetchAttemptResult]:
        return list(self.report)


class UnsupportedContentType(FetchError):
    """Response content-type does not match what the protocol expects."""

    def __init__(self, message: str, url: str = "", content_type: str = ""):
        super().__init__(message, url)
        self.content_type = content_type


class MalformedPayload(FetchError):
    """Response body failed structural validation (bad XML, bad JSON)."""

    def __init__(self, message: str, url: str = "", snippet: str = ""):
        super().__init__(message, url)
        self.snippet = snippet


class FetchCancelled(FetchError):
    """The caller's cancellation token was set before the fetch completed."""
