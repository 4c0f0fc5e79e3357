"""Health check endpoints for the feed relay API."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError

from feedrelay.api.dependencies import get_redis

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check():
    """
    Health check endpoint.

    Returns:
        A simple status object indicating the service is alive
    """
    return {"ok": True}


@router.get("/readyz")
async def readiness_check(redis: Redis = Depends(get_redis)):
    """
    Readiness check endpoint.

    Returns:
        {"ok": True} when the cache backend answers, 503 otherwise
    """
    try:
        await redis.ping()
    except RedisError:
        return JSONResponse(status_code=503, content={"ok": False, "cache": "unavailable"})
    return {"ok": True}
