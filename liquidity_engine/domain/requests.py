"""Domain models - API Request schemas."""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Union

from liquidity_engine.domain.liquidity import SignalDirection


class OHLCVBar(BaseModel):
    """Single candlestick bar. Timestamp is epoch milliseconds or ISO-8601."""
    timestamp: Union[int, float, str]
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class AnalyzeRequest(BaseModel):
    """Request body for the liquidity analysis endpoint."""
    symbol: str = Field(..., min_length=1, examples=["EURUSD"])
    candles: List[OHLCVBar] = Field(..., description="Chronologically ordered OHLCV bars")
    rsi_series: Optional[List[float]] = Field(
        default=None,
        description="RSI aligned with candles; computed from closes when omitted"
    )


class ExternalSignalRequest(BaseModel):
    """Third-party signal to check against detected liquidity events."""
    direction: SignalDirection
    price: float = Field(..., gt=0)


class ConfigValidationRequest(BaseModel):
    """Partial liquidity configuration to validate."""
    config: Dict[str, Any] = Field(default_factory=dict)
