"""API routers for the feed relay service."""

from feedrelay.api.routes_cors import router as cors_router
from feedrelay.api.routes_feed import router as feed_router
from feedrelay.api.routes_health import router as health_router
from feedrelay.api.routes_proxy import router as proxy_router

__all__ = [
    "health_router",
    "feed_router",
    "cors_router",
    "proxy_router",
]
