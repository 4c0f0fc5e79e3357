"""Tests for API endpoints."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from feedrelay.api import cors_router, feed_router, health_router, proxy_router
from feedrelay.api.dependencies import get_context, get_redis
from feedrelay.api.routes_feed import limiter
from feedrelay.config import Settings
from feedrelay.context import ResilienceContext

RELAY = "https://relay.test/api.json?rss_url="
FEED_URL = "https://news.example.com/world/rss.xml"

SAMPLE_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>World</title>
<item><title>Direct item</title><link>https://news.example.com/1</link>
<pubDate>Fri, 03 Jan 2025 09:00:00 GMT</pubDate></item>
</channel></rss>
"""


def relay_reply(url: str) -> dict:
    return {
        "status": "ok",
        "feed": {"title": url},
        "items": [
            {"title": f"Relayed from {url}", "link": f"{url}#1", "pubDate": "2025-01-01"},
        ],
    }


def upstream(request: httpx.Request) -> httpx.Response:
    """Fake internet: the relay answers for any target except failing.example.com."""
    if request.url.host == "relay.test":
        target = request.url.params["rss_url"]
        if "failing.example.com" in target:
            return httpx.Response(500)
        return httpx.Response(200, json=relay_reply(target))
    if request.url.host == "news.example.com":
        return httpx.Response(
            200, text=SAMPLE_RSS, headers={"content-type": "application/rss+xml"}
        )
    return httpx.Response(502)


@pytest.fixture
def context(fake_redis):
    settings = Settings(
        _env_file=None,
        rss2json_services=[RELAY],
        jsonp_services=[],
        cors_proxies=[],
        max_retries=1,
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return ResilienceContext.from_settings(settings, fake_redis, client=client)


@pytest_asyncio.fixture
async def test_app(context, fake_redis):
    """Create a test FastAPI app with all routers."""
    app = FastAPI()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.include_router(health_router)
    app.include_router(feed_router)
    app.include_router(cors_router)
    app.include_router(proxy_router)

    async def override_get_redis():
        yield fake_redis

    app.dependency_overrides[get_context] = lambda: context
    app.dependency_overrides[get_redis] = override_get_redis
    return app


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# Health check tests


@pytest.mark.asyncio
async def test_healthz_returns_200(client):
    """Test /healthz endpoint returns 200 with ok status."""
    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_readyz_returns_200(client):
    """Test /readyz endpoint returns 200 when Redis answers."""
    response = await client.get("/readyz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_readyz_returns_503_when_redis_down(client, fake_redis):
    fake_redis.ping.side_effect = RedisError("connection refused")

    response = await client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["ok"] is False


# /api/feeds tests


@pytest.mark.asyncio
async def test_acquire_returns_canonical_items(client):
    response = await client.post("/api/feeds/acquire", json={"url": FEED_URL, "id": "world"})

    assert response.status_code == 200
    data = response.json()
    assert data["source_id"] == "world"
    assert data["error"] is None
    assert data["stale"] is False
    assert data["items"][0]["title"] == f"Relayed from {FEED_URL}"
    assert data["items"][0]["pub_date"] == "2025-01-01T00:00:00.000Z"


@pytest.mark.asyncio
async def test_acquire_second_call_hits_cache(client):
    await client.post("/api/feeds/acquire", json={"url": FEED_URL})

    response = await client.post("/api/feeds/acquire", json={"url": FEED_URL})

    assert response.json()["from_cache"] is True


@pytest.mark.asyncio
async def test_acquire_failure_is_reported_not_raised(client):
    response = await client.post(
        "/api/feeds/acquire", json={"url": "https://failing.example.com/rss"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["items"] == []
    assert data["error"]["kind"] == "StrategyExhausted"
    assert len(data["error"]["attempts"]) >= 2


@pytest.mark.asyncio
async def test_acquire_rejects_blank_url(client):
    response = await client.post("/api/feeds/acquire", json={"url": "   "})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_batch_merges_sources(client):
    sources = [
        {"url": FEED_URL, "id": "world"},
        {"url": "https://other.example.com/rss", "id": "other"},
        {"url": "https://failing.example.com/rss", "id": "failing"},
    ]

    response = await client.post("/api/feeds/batch?limit=10", json=sources)

    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 2
    assert data["next_cursor"] is None
    statuses = {s["source_id"]: s for s in data["sources"]}
    assert statuses["world"]["item_count"] == 1
    assert statuses["failing"]["error"]["kind"] == "StrategyExhausted"


@pytest.mark.asyncio
async def test_batch_paginates(client):
    sources = [
        {"url": FEED_URL},
        {"url": "https://other.example.com/rss"},
    ]

    first = (await client.post("/api/feeds/batch?limit=1", json=sources)).json()
    second = (
        await client.post(
            "/api/feeds/batch", params={"limit": 1, "cursor": first["next_cursor"]}, json=sources
        )
    ).json()

    assert first["next_cursor"] is not None
    assert first["items"][0]["id"] != second["items"][0]["id"]
    assert second["next_cursor"] is None


@pytest.mark.asyncio
async def test_batch_requires_sources(client):
    response = await client.post("/api/feeds/batch", json=[])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_batch_rejects_bad_cursor(client):
    response = await client.post(
        "/api/feeds/batch?cursor=garbage", json=[{"url": FEED_URL}]
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid cursor format"


@pytest.mark.asyncio
async def test_invalidate_cache(client):
    await client.post("/api/feeds/acquire", json={"url": FEED_URL})

    response = await client.delete("/api/feeds/cache", params={"url": FEED_URL})

    assert response.status_code == 200
    assert response.json() == {"url": FEED_URL, "invalidated": True}

    again = await client.delete("/api/feeds/cache", params={"url": FEED_URL})
    assert again.json()["invalidated"] is False


# /api/cors tests


@pytest.mark.asyncio
async def test_cors_config(client):
    response = await client.get("/api/cors")

    assert response.status_code == 200
    data = response.json()
    assert data["default_strategy"] == "RSS2JSON"
    assert data["protocol_overrides"] == {}
    assert data["services"]["RSS2JSON"] == [RELAY]
    assert data["services"]["SERVICE_WORKER"] == ["http://localhost:8000/proxy?url="]
    assert data["services"]["DIRECT"] == []


@pytest.mark.asyncio
async def test_set_default_strategy(client, context):
    response = await client.put("/api/cors/default", json={"strategy": "DIRECT"})

    assert response.status_code == 200
    assert response.json()["default_strategy"] == "DIRECT"
    assert context.resolver.fallback_chain()[0].value == "DIRECT"


@pytest.mark.asyncio
async def test_set_default_strategy_requires_value(client):
    response = await client.put("/api/cors/default", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_protocol_override_set_and_clear(client):
    response = await client.put("/api/cors/protocols/rss", json={"strategy": "JSONP"})
    assert response.json()["protocol_overrides"] == {"rss": "JSONP"}

    response = await client.put("/api/cors/protocols/rss", json={"strategy": None})
    assert response.json()["protocol_overrides"] == {}


@pytest.mark.asyncio
async def test_strategy_check(client, context):
    response = await client.post("/api/cors/test", json={"url": FEED_URL})

    assert response.status_code == 200
    results = {r["strategy"]: r for r in response.json()}
    assert set(results) == {"RSS2JSON", "JSONP", "SERVICE_WORKER", "DIRECT", "EXTENSION"}
    assert results["DIRECT"]["success"] is True
    assert results["EXTENSION"]["success"] is False
    assert context.resolver.default_strategy.value == "RSS2JSON"


@pytest.mark.asyncio
async def test_strategy_check_rejects_non_http(client):
    response = await client.post("/api/cors/test", json={"url": "file:///etc/passwd"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_and_remove_service(client):
    backup = "https://backup-relay.test/?rss_url="

    response = await client.post("/api/cors/services/rss2json", json={"url": backup})
    assert response.status_code == 201
    assert response.json() == {
        "strategy": "RSS2JSON",
        "changed": True,
        "services": [RELAY, backup],
    }

    response = await client.delete("/api/cors/services/rss2json", params={"url": RELAY})
    assert response.status_code == 200
    assert response.json()["services"] == [backup]


@pytest.mark.asyncio
async def test_register_service_validation(client):
    unknown = await client.post("/api/cors/services/telepathy", json={"url": "https://x.test/"})
    direct = await client.post("/api/cors/services/DIRECT", json={"url": "https://x.test/"})

    assert unknown.status_code == 400
    assert direct.status_code == 400


@pytest.mark.asyncio
async def test_remove_unknown_service_returns_404(client):
    response = await client.delete(
        "/api/cors/services/corsproxies", params={"url": "https://nope.test/?"}
    )
    assert response.status_code == 404


# /proxy tests


@pytest.mark.asyncio
async def test_proxy_preflight(client):
    response = await client.options("/proxy")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_proxy_requires_url(client):
    response = await client.get("/proxy")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing url parameter"}


@pytest.mark.asyncio
async def test_proxy_rejects_non_http_scheme(client):
    response = await client.get("/proxy", params={"url": "file:///etc/passwd"})

    assert response.status_code == 400
    assert "HTTP" in response.json()["error"]


def mock_upstream_client(**get_kwargs) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(**get_kwargs)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


@pytest.mark.asyncio
async def test_proxy_relays_feed_with_cors_headers(client):
    upstream_response = httpx.Response(
        200, content=SAMPLE_RSS.encode(), headers={"content-type": "application/rss+xml"}
    )
    mock_client = mock_upstream_client(return_value=upstream_response)

    with patch("httpx.AsyncClient", return_value=mock_client):
        response = await client.get("/proxy", params={"url": FEED_URL})

    assert response.status_code == 200
    assert response.text == SAMPLE_RSS
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["x-proxy-url"] == FEED_URL
    assert response.headers["x-proxy-status"] == "success"
    assert mock_client.get.call_args[0][0] == FEED_URL


@pytest.mark.asyncio
async def test_proxy_passes_upstream_error_status(client):
    mock_client = mock_upstream_client(return_value=httpx.Response(404))

    with patch("httpx.AsyncClient", return_value=mock_client):
        response = await client.get("/proxy", params={"url": FEED_URL})

    assert response.status_code == 404
    assert response.json()["error"] == "Failed to fetch feed: 404"


@pytest.mark.asyncio
async def test_proxy_transport_error_returns_502(client):
    mock_client = mock_upstream_client(side_effect=httpx.ConnectError("no route to host"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        response = await client.get("/proxy", params={"url": FEED_URL})

    assert response.status_code == 502
    assert response.json()["error"] == "Internal proxy error"
