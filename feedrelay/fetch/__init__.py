"""Network layer: resilient fetching and CORS strategy resolution."""

from .models import CORSStrategy, FetchAttemptResult, FetchFailure

__all__ = ["CORSStrategy", "FetchAttemptResult", "FetchFailure"]
