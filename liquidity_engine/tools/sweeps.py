"""
Sweep Detection.

A sweep (stop hunt) occurs when a candle trades through a liquidity
pool, then closes back on the original side with a long rejection wick.
Pure observation - no trading signals.
"""
import logging
from typing import Iterable, Optional

from liquidity_engine.domain.liquidity import (
    Candlestick,
    Direction,
    LiquidityPool,
    LiquiditySweep,
)

logger = logging.getLogger(__name__)


class SweepDetector:
    """Checks the newest candle against active pools."""

    def __init__(self, min_wick_size: float = 0.5):
        self.min_wick_size = min_wick_size

    def detect_sweep(
        self,
        candle: Candlestick,
        active_pools: Iterable[LiquidityPool],
        candle_index: int = -1
    ) -> Optional[LiquiditySweep]:
        """
        Detect a sweep of the first qualifying pool.

        High-side pool: high above the pool, close back below, upper wick
        at least `min_wick_size` of the range. Low-side pools mirror this.

        Args:
            candle: The candle under test (normally the newest)
            active_pools: Pools in priority order; swept pools are ignored
            candle_index: Index of `candle` in the analyzed window

        Returns:
            LiquiditySweep or None. Zero-range or non-finite candles never sweep.
        """
        if not candle.is_finite or candle.range <= 0:
            return None

        candle_range = candle.range
        rejection_strength = min(candle.body / candle_range, 1.0)

        for pool in active_pools:
            if not pool.is_active:
                continue

            if pool.type.is_high:
                if not (candle.high > pool.price and candle.close < pool.price):
                    continue
                wick = candle.upper_wick / candle_range
                direction = Direction.UP
                sweep_price = candle.high
            else:
                if not (candle.low < pool.price and candle.close > pool.price):
                    continue
                wick = candle.lower_wick / candle_range
                direction = Direction.DOWN
                sweep_price = candle.low

            if wick < self.min_wick_size:
                continue

            sweep = LiquiditySweep(
                pool_id=pool.id,
                pool_type=pool.type,
                sweep_price=sweep_price,
                timestamp=candle.timestamp,
                candle_index=candle_index,
                wick_size=max(0.0, min(wick, 1.0)),
                direction=direction,
                rejection_strength=rejection_strength,
            )
            logger.debug(f"{sweep} (pool {pool.id})")
            return sweep

        return None
