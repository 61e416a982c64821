"""
Breakout Validation.

Judges whether a breach of a liquidity level is a genuine breakout:
- volume spike against the trailing average
- close beyond the level
- breakout-side wick no longer than half the range
- no RSI/price divergence over the last three observations
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from liquidity_engine.domain.liquidity import Candlestick, Direction, LiquidityPool
from liquidity_engine.tools.indicators import average_volume, detect_rsi_divergence

VOLUME_LOOKBACK = 20
MAX_BREAKOUT_WICK = 0.5


@dataclass
class BreakoutValidation:
    """Outcome of the four breakout checks."""
    is_valid: bool = True
    reasons: List[str] = field(default_factory=list)
    volume_check: bool = True
    close_check: bool = True
    wick_check: bool = True
    divergence_check: bool = True

    def fail(self, check: str, reason: str) -> None:
        setattr(self, check, False)
        self.is_valid = False
        self.reasons.append(reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "reasons": list(self.reasons),
            "volume_check": self.volume_check,
            "close_check": self.close_check,
            "wick_check": self.wick_check,
            "divergence_check": self.divergence_check,
        }


class BreakoutValidator:
    """Vetoes weak level breaches."""

    def __init__(self, volume_spike_multiplier: float = 1.5):
        self.volume_spike_multiplier = volume_spike_multiplier

    def validate_breakout(
        self,
        candle: Candlestick,
        pool: LiquidityPool,
        volume_history: Sequence[float],
        rsi_history: Sequence[float],
        price_history: Optional[Sequence[float]] = None,
        direction: Optional[Direction] = None
    ) -> BreakoutValidation:
        """
        Run all four checks; every failure adds a reason.

        Args:
            candle: Candle that breached the level
            pool: The breached pool
            volume_history: Volumes before `candle` (trailing 20 are used)
            rsi_history: RSI values ending at `candle`
            price_history: Closes ending at `candle`, for the divergence check
            direction: Breakout direction; defaults to the pool side
                (up through high-side pools, down through low-side pools)

        Returns:
            BreakoutValidation with the per-check flags
        """
        validation = BreakoutValidation()
        if direction is None:
            direction = Direction.UP if pool.type.is_high else Direction.DOWN

        # 1. Volume
        if volume_history:
            avg = average_volume(volume_history, VOLUME_LOOKBACK)
            if not self.check_volume_spike(candle.volume, avg):
                validation.fail(
                    "volume_check",
                    f"Insufficient volume: {candle.volume:.2f} < "
                    f"{self.volume_spike_multiplier}x average {avg:.2f}"
                )

        # 2. Close beyond the level
        if direction is Direction.UP:
            closed_beyond = candle.close > pool.price
        else:
            closed_beyond = candle.close < pool.price
        if not closed_beyond:
            validation.fail("close_check", f"No close beyond level {pool.price:.5f}")

        # 3. Breakout-side wick
        wick_ratio = self.wick_ratio(candle, direction)
        if wick_ratio > MAX_BREAKOUT_WICK:
            validation.fail("wick_check", f"Long breakout wick ({wick_ratio:.0%} of range) - price rejected")

        # 4. No RSI/price divergence
        if price_history is not None:
            divergence = detect_rsi_divergence(price_history, rsi_history)
            if divergence is not None:
                validation.fail("divergence_check", f"RSI divergence ({divergence.value}) on {direction.value} breakout")

        return validation

    def check_volume_spike(self, current_volume: float, avg_volume: float) -> bool:
        return current_volume >= avg_volume * self.volume_spike_multiplier

    @staticmethod
    def wick_ratio(candle: Candlestick, direction: Direction) -> float:
        """Wick on the breakout side as a fraction of the range."""
        if candle.range <= 0:
            return 0.0
        wick = candle.upper_wick if direction is Direction.UP else candle.lower_wick
        return wick / candle.range
