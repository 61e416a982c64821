"""Shared candle factories for the liquidity engine tests."""
from datetime import datetime, timedelta, timezone
from typing import List, Sequence

import pytest

from liquidity_engine.domain.liquidity import Candlestick

START = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)

UP_PATTERN = (3, 3, 3, -2, -2, -2)
DOWN_PATTERN = (-3, -3, -3, 2, 2, 2)


def at(minutes: int, start: datetime = START) -> datetime:
    return start + timedelta(minutes=minutes)


def candle(i: int, open_p: float, high: float, low: float, close: float, volume: float = 100.0,
           start: datetime = START) -> Candlestick:
    return Candlestick(timestamp=at(i, start), open=open_p, high=high, low=low, close=close, volume=volume)


def zigzag(start_price: float, deltas: Sequence[float]) -> List[Candlestick]:
    """
    One candle per mid price: high/low one point away, open/close half a point.

    mid[0] = start_price, mid[i] = mid[i - 1] + deltas[i - 1].
    """
    mids = [start_price]
    for d in deltas:
        mids.append(mids[-1] + d)
    return [candle(i, m - 0.5, m + 1, m - 1, m + 0.5) for i, m in enumerate(mids)]


def trend_then_reversal(start_price: float, first: Sequence[int], second: Sequence[int]) -> List[Candlestick]:
    """49 steps of `first`, then 10 steps of `second`: 60 candles."""
    deltas = [first[(i - 1) % 6] for i in range(1, 50)]
    deltas += [second[j % 6] for j in range(10)]
    return zigzag(start_price, deltas)


@pytest.fixture
def uptrend_reversal() -> List[Candlestick]:
    """Uptrend that turns down: exactly one CHOCH down at candle 52."""
    return trend_then_reversal(100.0, UP_PATTERN, DOWN_PATTERN)


@pytest.fixture
def downtrend_reversal() -> List[Candlestick]:
    """Downtrend that turns up: exactly one CHOCH up at candle 52."""
    return trend_then_reversal(150.0, DOWN_PATTERN, UP_PATTERN)


@pytest.fixture
def sweep_setup(downtrend_reversal) -> List[Candlestick]:
    """
    Downtrend reversal whose last candle runs the lows and closes on its high
    with a 10x volume spike: a sell-side sweep backed by an upward CHOCH.
    """
    candles = list(downtrend_reversal)
    candles[59] = candle(59, 133.0, 134.0, 110.0, 134.0, volume=1000.0)
    return candles


@pytest.fixture
def rising_highs() -> List[Candlestick]:
    """Highs rising 1% per candle, except the last which repeats the one before."""
    highs = [100 * 1.01 ** i for i in range(59)]
    highs.append(highs[58])
    candles = []
    for i, h in enumerate(highs):
        low = h - (0.8 if i == 59 else 0.5)
        candles.append(candle(i, h - 0.25, h, low, h - 0.25))
    return candles


def triangle_candles() -> List[Candlestick]:
    """
    50 candles oscillating inside a symmetric, contracting triangle.

    Swing highs sit exactly on 100 + 11(1 - k/60), swing lows on its
    mirror 100 - 11(1 - k/60); candle ranges shrink with the amplitude.
    """
    wave = (1.0, 0.5, -0.5, -1.0, -0.5, 0.5)
    candles = []
    for k in range(50):
        f = 1 - k / 60
        mid = 100 + 10 * f * wave[k % 6]
        candles.append(candle(k, mid, mid + f, mid - f, mid))
    return candles


def upper_line(k: float) -> float:
    return 100 + 11 * (1 - k / 60)


def lower_line(k: float) -> float:
    return 100 - 11 * (1 - k / 60)


@pytest.fixture
def triangle() -> List[Candlestick]:
    return triangle_candles()


@pytest.fixture
def triangle_breakout_retest() -> List[Candlestick]:
    """Close above the upper line, hold, then a small candle back on the line."""
    candles = triangle_candles()
    candles.append(candle(50, 100.9, 103.2, 100.8, 103.0))
    candles.append(candle(51, 103.0, 103.5, 102.5, 102.8))
    candles.append(candle(52, 101.5, 101.7, 101.3, 101.6))
    return candles


@pytest.fixture
def triangle_false_breakout() -> List[Candlestick]:
    """Wick above the upper line, close back inside."""
    candles = triangle_candles()
    candles.append(candle(50, 101.2, 102.0, 100.8, 101.0))
    return candles


def fixed_clock(hour: int, minute: int = 0):
    moment = datetime(2024, 3, 5, hour, minute, tzinfo=timezone.utc)
    return lambda: moment
