"""CORS strategy configuration and diagnostics endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from feedrelay.api.dependencies import get_context
from feedrelay.context import ResilienceContext
from feedrelay.fetch.cors import resolve_strategy
from feedrelay.fetch.models import CORSStrategy, FetchAttemptResult

router = APIRouter(prefix="/api/cors", tags=["cors"])


class CORSConfigResponse(BaseModel):
    default_strategy: CORSStrategy
    protocol_overrides: dict[str, CORSStrategy]
    services: dict[str, list[str]]


class StrategyRequest(BaseModel):
    strategy: CORSStrategy | None = None


class StrategyTestRequest(BaseModel):
    url: str


class ServiceRequest(BaseModel):
    url: str


class ServiceChangeResponse(BaseModel):
    strategy: CORSStrategy
    changed: bool
    services: list[str]


def _config(context: ResilienceContext) -> CORSConfigResponse:
    resolver = context.resolver
    return CORSConfigResponse(
        default_strategy=resolver.default_strategy,
        protocol_overrides=resolver.overrides,
        services=resolver.services.snapshot(),
    )


def _strategy_or_400(name: str) -> CORSStrategy:
    try:
        return resolve_strategy(name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=CORSConfigResponse)
async def get_cors_config(context: ResilienceContext = Depends(get_context)):
    """Return the active strategies and the relay service registry."""
    return _config(context)


@router.put("/default", response_model=CORSConfigResponse)
async def set_default_strategy(
    body: StrategyRequest, context: ResilienceContext = Depends(get_context)
):
    """Switch the default CORS strategy."""
    if body.strategy is None:
        raise HTTPException(status_code=400, detail="strategy is required")
    context.resolver.set_default_strategy(body.strategy)
    return _config(context)


@router.put("/protocols/{protocol}", response_model=CORSConfigResponse)
async def set_protocol_strategy(
    protocol: str,
    body: StrategyRequest,
    context: ResilienceContext = Depends(get_context),
):
    """Override the strategy for one protocol; a null strategy clears the override."""
    context.resolver.set_protocol_strategy(protocol, body.strategy)
    return _config(context)


@router.post("/test", response_model=list[FetchAttemptResult])
async def test_strategies(
    body: StrategyTestRequest, context: ResilienceContext = Depends(get_context)
):
    """
    Try every CORS strategy against a URL.

    Each result reports success, the candidate used, and elapsed time.
    The active configuration is not changed.
    """
    if not body.url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="Only HTTP and HTTPS URLs can be tested")
    return await context.test_all_strategies(body.url)


@router.post("/services/{family}", status_code=201, response_model=ServiceChangeResponse)
async def register_service(
    family: str,
    body: ServiceRequest,
    context: ResilienceContext = Depends(get_context),
):
    """Append a relay or proxy URL to a strategy's candidate list."""
    strategy = _strategy_or_400(family)
    try:
        changed = context.register_relay_service(strategy, body.url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ServiceChangeResponse(
        strategy=strategy,
        changed=changed,
        services=context.resolver.candidates_for(strategy),
    )


@router.delete("/services/{family}", response_model=ServiceChangeResponse)
async def remove_service(
    family: str,
    url: str = Query(..., min_length=1),
    context: ResilienceContext = Depends(get_context),
):
    """Remove a relay or proxy URL from a strategy's candidate list."""
    strategy = _strategy_or_400(family)
    if not context.remove_relay_service(strategy, url):
        raise HTTPException(status_code=404, detail="Service not registered")
    return ServiceChangeResponse(
        strategy=strategy,
        changed=True,
        services=context.resolver.candidates_for(strategy),
    )
