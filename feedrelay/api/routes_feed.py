"""Feed acquisition endpoints for the feed relay API."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from feedrelay.api.dependencies import get_context
from feedrelay.context import ResilienceContext
from feedrelay.feeds.aggregator import aggregate_items, decode_cursor
from feedrelay.feeds.models import AcquireResult, FeedItem, FeedSource
from feedrelay.fetch.models import FetchFailure

router = APIRouter(prefix="/api/feeds", tags=["feeds"])
limiter = Limiter(key_func=get_remote_address)


class SourceStatus(BaseModel):
    """Per-source outcome inside a batch response."""

    url: str
    source_id: str
    item_count: int
    stale: bool
    from_cache: bool
    error: FetchFailure | None = None


class BatchResponse(BaseModel):
    """Merged page of items from several sources."""

    items: list[FeedItem]
    next_cursor: str | None
    sources: list[SourceStatus]


class InvalidateResponse(BaseModel):
    url: str
    invalidated: bool


@router.post("/acquire", response_model=AcquireResult)
@limiter.limit("120/minute")
async def acquire_feed(
    request: Request,
    source: FeedSource,
    force_refresh: bool = Query(default=False, description="Bypass a fresh cache entry"),
    context: ResilienceContext = Depends(get_context),
):
    """
    Acquire canonical items for one source.

    Fetch failures do not produce an error status: the response carries the
    failure in ``error`` together with any stale cached items.

    Rate limit: 120 requests per minute per IP.
    """
    return await context.acquire(source, force_refresh=force_refresh)


@router.post("/batch", response_model=BatchResponse)
@limiter.limit("30/minute")
async def acquire_batch(
    request: Request,
    sources: list[FeedSource],
    limit: int = Query(default=50, ge=1, le=500, description="Items per page"),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
    force_refresh: bool = Query(default=False),
    context: ResilienceContext = Depends(get_context),
):
    """
    Acquire several sources and return one merged, newest-first page.

    Rate limit: 30 requests per minute per IP.
    """
    if not sources:
        raise HTTPException(status_code=400, detail="At least one source is required")

    if cursor:
        try:
            decode_cursor(cursor)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid cursor format")

    results = await context.acquire_many(sources, force_refresh=force_refresh)
    page = aggregate_items([r.items for r in results], limit=limit, cursor=cursor)

    return BatchResponse(
        items=page["items"],
        next_cursor=page["next_cursor"],
        sources=[
            SourceStatus(
                url=r.url,
                source_id=r.source_id,
                item_count=len(r.items),
                stale=r.stale,
                from_cache=r.from_cache,
                error=r.error,
            )
            for r in results
        ],
    )


@router.delete("/cache", response_model=InvalidateResponse)
async def invalidate_cache(
    url: str = Query(..., min_length=1, description="Source URL to evict"),
    context: ResilienceContext = Depends(get_context),
):
    """Drop the cached items for a source URL."""
    return InvalidateResponse(url=url, invalidated=await context.invalidate_cache(url))
