"""
Indicator helpers shared by the validator, the scorer and the engine.

Pure functions over plain float lists and candles.
"""
import math
from typing import List, Optional, Sequence

from liquidity_engine.domain.liquidity import Candlestick, Direction


def average(values: Sequence[float]) -> float:
    finite = [v for v in values if math.isfinite(v)]
    if not finite:
        return 0.0
    return sum(finite) / len(finite)


def average_volume(volumes: Sequence[float], lookback: int = 20) -> float:
    """Mean of the trailing `lookback` volumes."""
    return average(list(volumes)[-lookback:])


def average_range(candles: Sequence[Candlestick], lookback: int = 20) -> float:
    """Mean high-low range of the trailing `lookback` candles."""
    return average([c.range for c in list(candles)[-lookback:]])


def calculate_atr(candles: Sequence[Candlestick], period: int = 14) -> float:
    """
    Average True Range over the last `period` bars.

    With fewer than period + 1 candles the mean range of the last 20
    candles is returned instead.
    """
    candles = [c for c in candles if c.is_finite]
    if len(candles) < period + 1:
        return average_range(candles, 20)

    true_ranges = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        true_ranges.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))

    recent = true_ranges[-period:]
    return sum(recent) / period


def rsi(closes: List[float], period: int = 14) -> List[float]:
    """Wilder RSI. The first value corresponds to closes[period]."""
    if len(closes) <= period:
        return []
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [d if d > 0 else 0 for d in deltas]
    losses = [-d if d < 0 else 0 for d in deltas]
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    values = []
    for i in range(period, len(deltas) + 1):
        if avg_loss == 0:
            values.append(100.0 if avg_gain > 0 else 50.0)
        else:
            rs = avg_gain / avg_loss
            values.append(100 - (100 / (1 + rs)))
        if i < len(deltas):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period
    return values


def detect_rsi_divergence(prices: Sequence[float], rsi_values: Sequence[float]) -> Optional[Direction]:
    """
    Three-point divergence between price and RSI.

    Compares the first and last of the three most recent observations.
    Returns UP for bullish divergence (price lower, RSI higher), DOWN for
    bearish divergence (price higher, RSI lower), or None.
    """
    if len(prices) < 3 or len(rsi_values) < 3:
        return None

    p = list(prices)[-3:]
    r = list(rsi_values)[-3:]
    if p[2] > p[0] and r[2] < r[0]:
        return Direction.DOWN
    if p[2] < p[0] and r[2] > r[0]:
        return Direction.UP
    return None


def divergence_magnitude(rsi_values: Sequence[float]) -> float:
    """RSI change across the last three observations, scaled to 0-1."""
    if len(rsi_values) < 3:
        return 0.0
    r = list(rsi_values)[-3:]
    return min(abs(r[2] - r[0]) / 100.0, 1.0)
