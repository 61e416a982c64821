"""
Market Structure Tools.

Swing points, trend state and structure changes:
- CHOCH: the prevailing trend reverses (uptrend <-> downtrend)
- BOS: a trend resumes or continues past a prior swing extreme
Pure observation - no trading signals.
"""
import logging
from typing import List, Optional, Sequence

from liquidity_engine.domain.liquidity import (
    Candlestick,
    Direction,
    StructureChange,
    StructureType,
    SwingPoint,
    Trend,
)

logger = logging.getLogger(__name__)

SWING_WINDOW = 4


def find_swing_points(candles: Sequence[Candlestick], lookback: int = 2) -> List[SwingPoint]:
    """
    Identify swing highs and lows in chronological order.

    A swing high's high is strictly above the highs of the `lookback`
    candles on each side; swing lows mirror this. The last `lookback`
    candles can never be swings. Comparisons against non-finite values
    fail, so malformed bars never form swings.

    Args:
        candles: Chronological candles
        lookback: Neighbours required on each side

    Returns:
        SwingPoints ordered by candle index (a high before a low on the
        same candle)
    """
    swings: List[SwingPoint] = []

    for i in range(lookback, len(candles) - lookback):
        candle = candles[i]
        neighbours = [candles[i - j] for j in range(1, lookback + 1)]
        neighbours += [candles[i + j] for j in range(1, lookback + 1)]

        if all(candle.high > n.high for n in neighbours):
            swings.append(SwingPoint(kind="high", price=candle.high, candle_index=i))
        if all(candle.low < n.low for n in neighbours):
            swings.append(SwingPoint(kind="low", price=candle.low, candle_index=i))

    return swings


class StructureAnalyzer:
    """Trend state machine over swing points."""

    def __init__(self, swing_lookback: int = 20):
        self.swing_lookback = swing_lookback

    def identify_swing_points(self, candles: Sequence[Candlestick]) -> List[SwingPoint]:
        return find_swing_points(candles, lookback=2)

    def determine_trend(self, swings: Sequence[SwingPoint]) -> Trend:
        """
        Trend from the last two swing highs and the last two swing lows.

        Higher highs and higher lows = uptrend, lower highs and lower lows
        = downtrend, anything else (or too few swings) = range.
        """
        if len(swings) < SWING_WINDOW:
            return Trend.RANGE

        highs = [s for s in swings if s.is_high]
        lows = [s for s in swings if not s.is_high]
        if len(highs) < 2 or len(lows) < 2:
            return Trend.RANGE

        h0, h1 = highs[-2].price, highs[-1].price
        l0, l1 = lows[-2].price, lows[-1].price

        if h1 > h0 and l1 > l0:
            return Trend.UPTREND
        if h1 < h0 and l1 < l0:
            return Trend.DOWNTREND
        return Trend.RANGE

    @staticmethod
    def classify(previous: Trend, new: Trend) -> StructureType:
        """Direct reversal is CHOCH, anything else BOS."""
        if {previous, new} == {Trend.UPTREND, Trend.DOWNTREND}:
            return StructureType.CHOCH
        return StructureType.BOS

    @staticmethod
    def significance(swings: Sequence[SwingPoint]) -> float:
        """Spread of the swing prices relative to their midpoint, clamped to [0, 1]."""
        if len(swings) < 2:
            return 0.0
        prices = [s.price for s in swings]
        top, bottom = max(prices), min(prices)
        mid = (top + bottom) / 2
        if mid <= 0:
            return 0.0
        return max(0.0, min((top - bottom) / mid, 1.0))

    def analyze_structure(self, candles: Sequence[Candlestick]) -> List[StructureChange]:
        """
        Walk the swing points and emit every trend change.

        The starting trend comes from the first four swings. Each later
        four-swing window whose trend is not a range and differs from the
        tracked trend emits a change at its newest swing.

        Returns:
            StructureChanges in chronological order. Empty with fewer than
            `swing_lookback` candles or fewer than four swings.
        """
        if len(candles) < self.swing_lookback:
            return []

        swings = self.identify_swing_points(candles)
        if len(swings) < SWING_WINDOW:
            return []

        current = self.determine_trend(swings[:SWING_WINDOW])
        changes: List[StructureChange] = []

        for i in range(SWING_WINDOW, len(swings)):
            window = swings[i - SWING_WINDOW + 1:i + 1]
            new = self.determine_trend(window)
            if new is Trend.RANGE or new is current:
                continue

            swing = swings[i]
            changes.append(StructureChange(
                type=self.classify(current, new),
                direction=Direction.UP if new is Trend.UPTREND else Direction.DOWN,
                price=swing.price,
                timestamp=candles[swing.candle_index].timestamp,
                candle_index=swing.candle_index,
                previous_structure=current,
                significance=self.significance(window),
            ))
            current = new

        logger.debug(f"Structure: {len(swings)} swings, {len(changes)} changes")
        return changes

    def current_trend(self, candles: Sequence[Candlestick]) -> Trend:
        """Trend implied by the most recent four swings."""
        swings = self.identify_swing_points(candles)
        return self.determine_trend(swings[-SWING_WINDOW:])

    def check_for_bos(
        self,
        candle: Candlestick,
        swings: Sequence[SwingPoint],
        trend: Trend
    ) -> bool:
        """
        Whether `candle` closes beyond the last swing extreme in the trend direction.

        Uptrend: close above the last swing high. Downtrend: close below
        the last swing low. Range: never.
        """
        if len(swings) < 2:
            return False

        last: Optional[SwingPoint] = None
        if trend is Trend.UPTREND:
            last = next((s for s in reversed(swings) if s.is_high), None)
            return last is not None and candle.close > last.price
        if trend is Trend.DOWNTREND:
            last = next((s for s in reversed(swings) if not s.is_high), None)
            return last is not None and candle.close < last.price
        return False
