"""Multi-protocol feed acquisition with CORS fallback, retries, and caching."""

__version__ = "1.0.0"
