"""Liquidity analysis API endpoints."""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from liquidity_engine.core.liquidity_config import validate_config
from liquidity_engine.core.validation import parse_candles
from liquidity_engine.domain.liquidity import PoolStatus, to_utc_datetime
from liquidity_engine.domain.requests import AnalyzeRequest, ConfigValidationRequest, ExternalSignalRequest
from liquidity_engine.domain.responses import (
    ConfigValidationResponse,
    ExternalSignalResponse,
    SignalResponse,
)
from liquidity_engine.engine.engine import LiquidityEngine
from liquidity_engine.engine.registry import EngineRegistry, get_engine_registry

router = APIRouter(prefix="/liquidity", tags=["Liquidity"])

RECENT_SIGNALS = 5


def _engine_for(symbol: str, registry: EngineRegistry) -> LiquidityEngine:
    if symbol not in registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No analysis recorded for {symbol}")
    return registry.get(symbol)


def _parse_time(value: Optional[str], name: str) -> Optional[datetime]:
    """Epoch milliseconds or ISO-8601."""
    if value is None:
        return None
    try:
        return to_utc_datetime(int(value) if value.lstrip("-").isdigit() else value)
    except (TypeError, ValueError, OverflowError, OSError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name}: {value}")


@router.post("/analyze", response_model=dict)
async def analyze(
    request: AnalyzeRequest,
    registry: EngineRegistry = Depends(get_engine_registry)
) -> dict:
    """
    Run liquidity analysis on a candle window.

    Candles are validated first; any malformed bar rejects the whole
    request with the list of violations.

    Returns:
    - pools, sweeps and structure changes recorded for the symbol
    - signal, or the blocking reasons when there is none
    - active session, score and latest triangle setup
    """
    candles = parse_candles([bar.model_dump() for bar in request.candles])
    engine = registry.get(request.symbol)
    result = engine.analyze(request.symbol, candles, rsi_series=request.rsi_series)
    return {"symbol": request.symbol.upper(), **result.to_dict()}


@router.get("/{symbol}/pools", response_model=dict)
async def get_pools(
    symbol: str,
    pool_status: Optional[str] = Query(default=None, alias="status"),
    registry: EngineRegistry = Depends(get_engine_registry)
) -> dict:
    """Recorded pools, optionally filtered by status (active or swept)."""
    store = _engine_for(symbol, registry).get_store()

    if pool_status is None:
        pools = store.get_state().pools
    else:
        try:
            wanted = PoolStatus(pool_status.lower())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status '{pool_status}', expected one of: active, swept"
            )
        pools = store.get_active_pools() if wanted is PoolStatus.ACTIVE else store.get_swept_pools()

    return {"symbol": symbol.upper(), "count": len(pools), "pools": [p.to_dict() for p in pools]}


@router.get("/{symbol}/sweeps", response_model=dict)
async def get_sweeps(
    symbol: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    registry: EngineRegistry = Depends(get_engine_registry)
) -> dict:
    """Sweeps between `start` and `end` (epoch ms or ISO-8601), inclusive."""
    store = _engine_for(symbol, registry).get_store()
    start_dt = _parse_time(start, "start") or datetime.min.replace(tzinfo=timezone.utc)
    end_dt = _parse_time(end, "end") or datetime.max.replace(tzinfo=timezone.utc)
    if start_dt > end_dt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end")

    sweeps = store.get_sweeps_in_range(start_dt, end_dt)
    return {"symbol": symbol.upper(), "count": len(sweeps), "sweeps": [s.to_dict() for s in sweeps]}


@router.get("/{symbol}/signal", response_model=SignalResponse)
async def get_signal(
    symbol: str,
    registry: EngineRegistry = Depends(get_engine_registry)
) -> SignalResponse:
    """Latest signal plus the most recent ones, newest first."""
    recent = _engine_for(symbol, registry).get_store().get_recent_signals(RECENT_SIGNALS)
    return SignalResponse(
        symbol=symbol.upper(),
        signal=recent[0].to_dict() if recent else None,
        recent=[s.to_dict() for s in recent],
    )


@router.post("/{symbol}/signal/validate", response_model=ExternalSignalResponse)
async def validate_external_signal(
    symbol: str,
    request: ExternalSignalRequest,
    registry: EngineRegistry = Depends(get_engine_registry)
) -> ExternalSignalResponse:
    """Check a third-party signal against the recorded sweeps and structure changes."""
    verdict = _engine_for(symbol, registry).validate_external_signal(request.direction, request.price)
    return ExternalSignalResponse(symbol=symbol.upper(), is_valid=verdict.is_valid, reasons=verdict.reasons)


@router.get("/{symbol}/statistics", response_model=dict)
async def get_statistics(
    symbol: str,
    registry: EngineRegistry = Depends(get_engine_registry)
) -> dict:
    """Store counters for the symbol."""
    stats = _engine_for(symbol, registry).get_store().get_statistics()
    return {"symbol": symbol.upper(), **stats}


@router.post("/config/validate", response_model=ConfigValidationResponse)
async def validate_liquidity_config(request: ConfigValidationRequest) -> ConfigValidationResponse:
    """Validate a partial configuration without applying it."""
    result = validate_config(request.config)
    return ConfigValidationResponse(is_valid=result.is_valid, errors=result.errors)
