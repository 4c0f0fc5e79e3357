"""Local CORS relay: fetches a feed server-side and re-serves it with CORS headers.

This is the process ``PROXY_URL`` points at; the SERVICE_WORKER strategy
tries it before any third-party proxy.
"""

import logging
from urllib.parse import urlparse

import httpx
from fastapi import APIRouter, Query, Response
from fastapi.responses import JSONResponse

router = APIRouter(tags=["proxy"])
logger = logging.getLogger(__name__)

PROXY_TIMEOUT_SECONDS = 10.0

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

UPSTREAM_HEADERS = {
    "User-Agent": "feedrelay-proxy/1.0",
    "Accept": (
        "application/rss+xml, application/xml, text/xml, "
        "application/atom+xml, application/json, text/html, */*"
    ),
    "Cache-Control": "no-cache",
}


def _error(status_code: int, **content) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


@router.options("/proxy")
async def proxy_preflight():
    """Answer CORS preflight requests."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.get("/proxy")
async def proxy_feed(url: str | None = Query(default=None)):
    """
    Fetch ``url`` and return its body with permissive CORS headers.

    Only HTTP and HTTPS targets are relayed. Upstream failures are reported
    as JSON error bodies carrying the upstream status code.
    """
    if not url:
        return _error(400, error="Missing url parameter")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return _error(400, error="Only HTTP and HTTPS protocols are allowed")

    logger.info(f"Proxying request to: {url}")
    try:
        async with httpx.AsyncClient(
            timeout=PROXY_TIMEOUT_SECONDS, follow_redirects=True
        ) as client:
            upstream = await client.get(url, headers=UPSTREAM_HEADERS)
    except httpx.HTTPError as e:
        logger.error(f"Proxy error for {url}: {e}")
        return _error(502, error="Internal proxy error", message=str(e))

    if upstream.status_code >= 400:
        logger.error(f"Feed fetch failed: {upstream.status_code} for {url}")
        return _error(
            upstream.status_code,
            error=f"Failed to fetch feed: {upstream.status_code}",
            url=url,
        )

    return Response(
        content=upstream.content,
        status_code=200,
        media_type=upstream.headers.get("content-type", "application/xml"),
        headers={
            **CORS_HEADERS,
            "Cache-Control": "public, max-age=300",
            "X-Proxy-URL": url,
            "X-Proxy-Status": "success",
        },
    )
