"""Domain module."""
from liquidity_engine.domain.liquidity import (
    Candlestick,
    LiquidityPool,
    LiquiditySweep,
    StructureChange,
    SignalScore,
    ScoreBreakdown,
    TradingSignal,
    SwingPoint,
    PoolType,
    PoolStatus,
    Direction,
    StructureType,
    Trend,
    SignalDirection,
    TradingSession,
    to_utc_datetime,
)
from liquidity_engine.domain.triangle import (
    Triangle,
    TriangleLine,
    TriangleBreakout,
    TriangleRetest,
    FalseBreakout,
    TriangleSignal,
    TriangleSignalType,
    TriangleSignalValidation,
    TriangleSetup,
)
from liquidity_engine.domain.requests import (
    OHLCVBar,
    AnalyzeRequest,
    ExternalSignalRequest,
    ConfigValidationRequest,
)
from liquidity_engine.domain.responses import (
    HealthResponse,
    SignalResponse,
    ExternalSignalResponse,
    ConfigValidationResponse,
)
