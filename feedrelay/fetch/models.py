"""Pydantic models shared by the fetch layer."""

from enum import Enum

from pydantic import BaseModel, Field


class CORSStrategy(str, Enum):
    """Technique used to reach an endpoint that does not send CORS headers."""

    RSS2JSON = "RSS2JSON"
    JSONP = "JSONP"
    SERVICE_WORKER = "SERVICE_WORKER"
    DIRECT = "DIRECT"
    EXTENSION = "EXTENSION"


class FetchAttemptResult(BaseModel):
    """Outcome of one attempt through a strategy, used for health reporting."""

    success: bool
    strategy: CORSStrategy
    candidate: str | None = None
    elapsed_ms: float
    error: str | None = None


class FetchFailure(BaseModel):
    """Typed failure handed to callers instead of an exception."""

    kind: str
    message: str
    url: str
    attempts: list[FetchAttemptResult] = Field(default_factory=list)
