"""
Liquidity Pool Detection.

Identifies price levels where stop-losses are likely clustered:
equal highs/lows, previous day high/low, Asian range, range high/low,
trendline extremes and triangle boundaries.
Pure observation - no trading signals.
"""
import logging
import math
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from liquidity_engine.core.liquidity_config import LiquidityConfig
from liquidity_engine.domain.liquidity import Candlestick, LiquidityPool, PoolType
from liquidity_engine.domain.triangle import Triangle
from liquidity_engine.tools.sessions import is_asian_range
from liquidity_engine.tools.structure import find_swing_points

logger = logging.getLogger(__name__)


def _cluster_prices(
    points: Sequence[Tuple[int, float]],
    tolerance: float,
    min_count: int
) -> List[Tuple[List[int], float]]:
    """
    Greedy single-pass grouping of prices within a relative tolerance.

    For each unvisited point, gathers every unvisited point within
    `tolerance * |price|` of it. Groups of at least `min_count` are kept
    and their members removed from further grouping.

    Returns:
        List of (candle_indices, mean_price)
    """
    points = [(i, p) for i, p in points if math.isfinite(p)]
    consumed = set()
    clusters = []

    for pos, (_, target) in enumerate(points):
        if pos in consumed:
            continue

        allowed = tolerance * abs(target)
        members = [
            other for other, (_, price) in enumerate(points)
            if other not in consumed and abs(price - target) <= allowed
        ]

        if len(members) >= min_count:
            consumed.update(members)
            indices = [points[m][0] for m in members]
            mean_price = sum(points[m][1] for m in members) / len(members)
            clusters.append((indices, mean_price))

    return clusters


def _extremes(
    candles: Sequence[Candlestick],
    indices: Sequence[int]
) -> Tuple[Optional[float], List[int], Optional[float], List[int]]:
    """Highest high and lowest low among `indices`, keeping every tied index."""
    high, low = None, None
    high_idx: List[int] = []
    low_idx: List[int] = []

    for i in indices:
        candle = candles[i]
        if not candle.is_finite:
            continue
        if high is None or candle.high > high:
            high, high_idx = candle.high, [i]
        elif candle.high == high:
            high_idx.append(i)
        if low is None or candle.low < low:
            low, low_idx = candle.low, [i]
        elif candle.low == low:
            low_idx.append(i)

    return high, high_idx, low, low_idx


class LiquidityPoolDetector:
    """Runs every pool detection method and unions the results."""

    def __init__(self, config: Optional[LiquidityConfig] = None):
        self.config = config or LiquidityConfig()

    def detect(self, candles: Sequence[Candlestick]) -> List[LiquidityPool]:
        """All pools for the candle window."""
        if len(candles) < 2:
            return []

        pools: List[LiquidityPool] = []
        pools.extend(self.detect_equal_highs(candles, self.config.equal_tolerance))
        pools.extend(self.detect_equal_lows(candles, self.config.equal_tolerance))
        pools.extend(self.detect_previous_day_high_low(candles))
        pools.extend(self.detect_asian_range(candles))
        pools.extend(self.detect_range_high_low(candles, self.config.min_range_touches))
        pools.extend(self.detect_trendline_high_low(candles))

        logger.debug(f"Detected {len(pools)} pools over {len(candles)} candles")
        return pools

    def detect_equal_highs(self, candles: Sequence[Candlestick], tolerance: float) -> List[LiquidityPool]:
        """
        Two or more candles with highs within `tolerance` (relative) of each other.

        Args:
            candles: Chronological candles
            tolerance: Relative tolerance, e.g. 0.001 = 0.1%

        Returns:
            One equal_highs pool per group, priced at the group mean,
            strength = number of candles in the group
        """
        if len(candles) < 2:
            return []

        clusters = _cluster_prices([(i, c.high) for i, c in enumerate(candles)], tolerance, 2)
        return [
            LiquidityPool(
                type=PoolType.EQUAL_HIGHS,
                price=price,
                timestamp=candles[indices[0]].timestamp,
                candle_indices=indices,
                strength=len(indices),
            )
            for indices, price in clusters
        ]

    def detect_equal_lows(self, candles: Sequence[Candlestick], tolerance: float) -> List[LiquidityPool]:
        """Mirror of detect_equal_highs over candle lows."""
        if len(candles) < 2:
            return []

        clusters = _cluster_prices([(i, c.low) for i, c in enumerate(candles)], tolerance, 2)
        return [
            LiquidityPool(
                type=PoolType.EQUAL_LOWS,
                price=price,
                timestamp=candles[indices[0]].timestamp,
                candle_indices=indices,
                strength=len(indices),
            )
            for indices, price in clusters
        ]

    def detect_previous_day_high_low(self, candles: Sequence[Candlestick]) -> List[LiquidityPool]:
        """
        Prior UTC day's extremes, effective from the next day's first candle.

        Returns:
            A pdh and a pdl pool for every day that has a following day
        """
        if len(candles) < 2:
            return []

        days: Dict[object, List[int]] = OrderedDict()
        for i, candle in enumerate(candles):
            days.setdefault(candle.timestamp.date(), []).append(i)

        ordered = sorted(days.items(), key=lambda item: item[0])
        pools = []
        for (_, prev_indices), (_, curr_indices) in zip(ordered, ordered[1:]):
            high, high_idx, low, low_idx = _extremes(candles, prev_indices)
            if high is None:
                continue
            effective = candles[curr_indices[0]].timestamp
            pools.append(LiquidityPool(
                type=PoolType.PDH, price=high, timestamp=effective, candle_indices=high_idx, strength=1
            ))
            pools.append(LiquidityPool(
                type=PoolType.PDL, price=low, timestamp=effective, candle_indices=low_idx, strength=1
            ))

        return pools

    def detect_asian_range(self, candles: Sequence[Candlestick]) -> List[LiquidityPool]:
        """High and low of each 00:00-08:00 UTC session."""
        sessions: Dict[object, List[int]] = OrderedDict()
        for i, candle in enumerate(candles):
            if is_asian_range(candle.timestamp):
                sessions.setdefault(candle.timestamp.date(), []).append(i)

        pools = []
        for indices in sessions.values():
            high, high_idx, low, low_idx = _extremes(candles, indices)
            if high is None:
                continue
            opened = candles[indices[0]].timestamp
            pools.append(LiquidityPool(
                type=PoolType.ASIAN_HIGH, price=high, timestamp=opened, candle_indices=high_idx, strength=1
            ))
            pools.append(LiquidityPool(
                type=PoolType.ASIAN_LOW, price=low, timestamp=opened, candle_indices=low_idx, strength=1
            ))

        return pools

    def detect_range_high_low(self, candles: Sequence[Candlestick], min_touches: int) -> List[LiquidityPool]:
        """Horizontal levels touched at least `min_touches` times."""
        if len(candles) < max(min_touches, 2):
            return []

        tolerance = self.config.equal_tolerance
        pools = []
        for pool_type, prices in (
            (PoolType.RANGE_HIGH, [(i, c.high) for i, c in enumerate(candles)]),
            (PoolType.RANGE_LOW, [(i, c.low) for i, c in enumerate(candles)]),
        ):
            for indices, price in _cluster_prices(prices, tolerance, min_touches):
                pools.append(LiquidityPool(
                    type=pool_type,
                    price=price,
                    timestamp=candles[indices[0]].timestamp,
                    candle_indices=indices,
                    strength=len(indices),
                ))

        return pools

    def detect_trendline_high_low(self, candles: Sequence[Candlestick]) -> List[LiquidityPool]:
        """
        Most extreme swing high and swing low among the recent swings.

        Swings are strict 2-bar extremes; only the last `swing_lookback`
        swings of each side are considered.
        """
        if len(candles) < 5:
            return []

        swings = find_swing_points(candles)
        lookback = self.config.swing_lookback
        highs = [s for s in swings if s.is_high][-lookback:]
        lows = [s for s in swings if not s.is_high][-lookback:]

        pools = []
        if highs:
            top = max(highs, key=lambda s: s.price)
            pools.append(LiquidityPool(
                type=PoolType.TRENDLINE_HIGH,
                price=top.price,
                timestamp=candles[top.candle_index].timestamp,
                candle_indices=[top.candle_index],
                strength=1,
            ))
        if lows:
            bottom = min(lows, key=lambda s: s.price)
            pools.append(LiquidityPool(
                type=PoolType.TRENDLINE_LOW,
                price=bottom.price,
                timestamp=candles[bottom.candle_index].timestamp,
                candle_indices=[bottom.candle_index],
                strength=1,
            ))

        return pools

    def triangle_pools(self, triangle: Triangle, candles: Sequence[Candlestick]) -> List[LiquidityPool]:
        """
        Triangle boundaries as pools, priced where each line ends.

        Pricing at the triangle's last candle keeps the pool ids stable
        across repeated analysis of the same pattern.
        """
        if not candles:
            return []

        end = min(triangle.end_index, len(candles) - 1)
        formed = candles[end].timestamp
        upper = triangle.upper_line
        lower = triangle.lower_line
        return [
            LiquidityPool(
                type=PoolType.TRIANGLE_UPPER,
                price=upper.price_at(end),
                timestamp=formed,
                candle_indices=[i for i, _ in upper.points],
                strength=len(upper.points),
            ),
            LiquidityPool(
                type=PoolType.TRIANGLE_LOWER,
                price=lower.price_at(end),
                timestamp=formed,
                candle_indices=[i for i, _ in lower.points],
                strength=len(lower.points),
            ),
        ]
