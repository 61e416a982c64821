"""Health check API endpoint."""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from liquidity_engine import __version__
from liquidity_engine.domain.responses import HealthResponse
from liquidity_engine.engine.registry import EngineRegistry, get_engine_registry

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    registry: EngineRegistry = Depends(get_engine_registry)
) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
    - API status
    - Symbols with a live engine
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        engines=registry.symbols(),
        timestamp=datetime.now(timezone.utc).isoformat()
    )
