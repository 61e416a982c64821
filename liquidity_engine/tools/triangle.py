"""
Triangle Pattern Detection.

Finds converging trendline consolidations and how price leaves them:
1. Build the triangle - at least 2 touches above and below, converging
   lines, shrinking candles.
2. Breakout - a close beyond a line that the next candle does not undo.
3a. Breakout + retest - price returns to the broken line, the line holds
    on small candles: trade in the breakout direction.
3b. False breakout - a wick pierces a line but the candle closes back
    inside: trade the opposite way.
4. Filter - enough room to target and a sensibly placed stop.
"""
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from liquidity_engine.domain.liquidity import Candlestick, Direction, SignalDirection
from liquidity_engine.domain.triangle import (
    FalseBreakout,
    Triangle,
    TriangleBreakout,
    TriangleLine,
    TriangleRetest,
    TriangleSetup,
    TriangleSignal,
    TriangleSignalType,
    TriangleSignalValidation,
)
from liquidity_engine.tools.structure import find_swing_points

logger = logging.getLogger(__name__)

MIN_CANDLES = 20
MIN_TOUCHES = 2
CONVERGENCE_THRESHOLD = 0.7   # end gap must be below this share of the start gap
COMPRESSION_THRESHOLD = 0.7   # second-half ranges must be below this share of the first half

BREAKOUT_WINDOW = 10          # candles after the triangle end where a breakout still counts
FALSE_BREAKOUT_WINDOW = 5
RETEST_WINDOW = 10
HOLD_TOLERANCE = 0.005        # 0.5% around the line
RETEST_DISTANCE = 0.01        # close within 1% of the line
WEAK_CANDLE_RATIO = 0.7

MIN_RISK_REWARD = 1.5
MIN_STOP_DISTANCE = 0.005
MAX_STOP_DISTANCE = 0.03


class TriangleDetector:
    """Sliding-window triangle detection with breakout resolution."""

    def __init__(self, lookback: int = 50):
        self.lookback = lookback

    # =========================================================================
    # Step 1: triangles
    # =========================================================================

    def detect_triangles(self, candles: Sequence[Candlestick]) -> List[Triangle]:
        """
        Slide a `lookback` window one candle at a time and keep every valid triangle.

        Consecutive windows fitting the same swing touches describe one
        pattern; it is reported once, extended to the latest such window.
        """
        if len(candles) < MIN_CANDLES:
            return []

        window = min(self.lookback, len(candles))
        triangles: List[Triangle] = []

        for end in range(window, len(candles) + 1):
            triangle = self.find_triangle_in_window(candles, end - window, end)
            if triangle is None:
                continue
            if triangles and triangles[-1].touch_signature == triangle.touch_signature:
                triangles[-1] = triangle
            else:
                triangles.append(triangle)

        logger.debug(f"Detected {len(triangles)} triangles over {len(candles)} candles")
        return triangles

    def find_triangle_in_window(
        self,
        candles: Sequence[Candlestick],
        start: int,
        end: int
    ) -> Optional[Triangle]:
        """Fit and validate a triangle over candles[start:end]. Indices stay global."""
        window = candles[start:end]
        swings = find_swing_points(window)
        highs = [(start + s.candle_index, s.price) for s in swings if s.is_high]
        lows = [(start + s.candle_index, s.price) for s in swings if not s.is_high]

        if len(highs) < MIN_TOUCHES or len(lows) < MIN_TOUCHES:
            return None

        upper = self.fit_line(highs)
        lower = self.fit_line(lows)
        if upper is None or lower is None:
            return None

        if not self.check_convergence(upper, lower, start, end - 1):
            return None

        compression = self.compression_ratio(window)
        if compression >= COMPRESSION_THRESHOLD:
            return None

        first_touch = min(highs[0][0], lows[0][0])
        height = upper.price_at(first_touch) - lower.price_at(first_touch)

        return Triangle(
            upper_line=upper,
            lower_line=lower,
            start_index=first_touch,
            end_index=end - 1,
            height=height,
            compression_ratio=compression,
            is_converging=True,
        )

    @staticmethod
    def fit_line(points: Sequence[Tuple[int, float]]) -> Optional[TriangleLine]:
        """Least-squares line through (index, price) points."""
        if len(points) < 2:
            return None

        indices = np.array([i for i, _ in points], dtype=float)
        prices = np.array([p for _, p in points], dtype=float)
        if np.ptp(indices) == 0:
            return None

        slope, intercept = np.polyfit(indices, prices, 1)
        return TriangleLine(points=list(points), slope=float(slope), intercept=float(intercept))

    @staticmethod
    def check_convergence(upper: TriangleLine, lower: TriangleLine, start: int, end: int) -> bool:
        """Gap at `end` is positive and below CONVERGENCE_THRESHOLD of the gap at `start`."""
        start_gap = upper.price_at(start) - lower.price_at(start)
        end_gap = upper.price_at(end) - lower.price_at(end)
        if start_gap <= 0 or end_gap <= 0:
            return False
        return end_gap < start_gap * CONVERGENCE_THRESHOLD

    @staticmethod
    def compression_ratio(candles: Sequence[Candlestick]) -> float:
        """
        Mean range of the second half over the mean range of the first half.

        Lower means tighter. 1.0 when it cannot be measured.
        """
        if len(candles) < 10:
            return 1.0
        half = len(candles) // 2
        ranges = np.array([c.range for c in candles], dtype=float)
        first = ranges[:half][np.isfinite(ranges[:half])]
        second = ranges[half:][np.isfinite(ranges[half:])]
        if first.size == 0 or second.size == 0:
            return 1.0
        first_mean = np.mean(first)
        if first_mean <= 0:
            return 1.0
        return float(np.mean(second) / first_mean)

    # =========================================================================
    # Step 2-3: resolutions
    # =========================================================================

    def detect_breakout(
        self,
        candles: Sequence[Candlestick],
        triangle: Triangle,
        index: int
    ) -> Optional[TriangleBreakout]:
        """
        Close beyond a line at `index` that the next candle does not undo.

        The next candle may not close back more than 0.5% inside the line.
        """
        if index < triangle.start_index or index > triangle.end_index + BREAKOUT_WINDOW:
            return None
        if index >= len(candles):
            return None

        candle = candles[index]
        upper = triangle.upper_line.price_at(index)
        lower = triangle.lower_line.price_at(index)
        following = candles[index + 1] if index + 1 < len(candles) else None

        if candle.close > upper:
            holds = following is None or following.close > upper * (1 - HOLD_TOLERANCE)
            if holds:
                return TriangleBreakout(
                    triangle_id=triangle.id,
                    direction=Direction.UP,
                    breakout_index=index,
                    breakout_price=candle.close,
                    is_body_breakout=min(candle.open, candle.close) > upper,
                )

        if candle.close < lower:
            holds = following is None or following.close < lower * (1 + HOLD_TOLERANCE)
            if holds:
                return TriangleBreakout(
                    triangle_id=triangle.id,
                    direction=Direction.DOWN,
                    breakout_index=index,
                    breakout_price=candle.close,
                    is_body_breakout=max(candle.open, candle.close) < lower,
                )

        return None

    def detect_retest(
        self,
        candles: Sequence[Candlestick],
        triangle: Triangle,
        breakout: TriangleBreakout,
        index: int
    ) -> Optional[TriangleRetest]:
        """
        Return to the broken line within RETEST_WINDOW candles.

        Requires a close within 1% of the line, the line holding (0.5%
        tolerance) and a candle smaller than 0.7x the previous five.
        """
        if index <= breakout.breakout_index or index > breakout.breakout_index + RETEST_WINDOW:
            return None
        if index >= len(candles):
            return None

        candle = candles[index]
        if breakout.direction is Direction.UP:
            line = triangle.upper_line.price_at(index)
        else:
            line = triangle.lower_line.price_at(index)
        if line == 0:
            return None

        if abs(candle.close - line) / abs(line) > RETEST_DISTANCE:
            return None

        if breakout.direction is Direction.UP:
            line_holds = candle.low > line * (1 - HOLD_TOLERANCE)
        else:
            line_holds = candle.high < line * (1 + HOLD_TOLERANCE)

        recent = candles[max(0, index - 5):index]
        avg_range = float(np.mean([c.range for c in recent])) if recent else 0.0
        weak_candles = candle.range < avg_range * WEAK_CANDLE_RATIO

        if line_holds and weak_candles:
            return TriangleRetest(
                triangle_id=triangle.id,
                breakout_direction=breakout.direction,
                retest_index=index,
                retest_price=candle.close,
                line_holds=line_holds,
                weak_candles=weak_candles,
            )
        return None

    def detect_false_breakout(
        self,
        candles: Sequence[Candlestick],
        triangle: Triangle,
        index: int
    ) -> Optional[FalseBreakout]:
        """A wick beyond a line with the close back inside the triangle."""
        if index < triangle.start_index or index > triangle.end_index + FALSE_BREAKOUT_WINDOW:
            return None
        if index >= len(candles):
            return None

        candle = candles[index]
        upper = triangle.upper_line.price_at(index)
        lower = triangle.lower_line.price_at(index)

        if candle.high > upper and candle.close < upper:
            return FalseBreakout(triangle_id=triangle.id, fake_direction=Direction.UP, index=index)
        if candle.low < lower and candle.close > lower:
            return FalseBreakout(triangle_id=triangle.id, fake_direction=Direction.DOWN, index=index)
        return None

    # =========================================================================
    # Step 4: signals
    # =========================================================================

    def generate_signal(
        self,
        candles: Sequence[Candlestick],
        triangle: Triangle,
        signal_type: TriangleSignalType,
        breakout: Optional[TriangleBreakout] = None,
        retest: Optional[TriangleRetest] = None,
        false_breakout: Optional[FalseBreakout] = None
    ) -> Optional[TriangleSignal]:
        """
        Build entry, stop and target for a resolved triangle.

        Breakout + retest: enter at the retest close, stop 0.5% beyond the
        broken line, target one triangle height away.
        False breakout: enter at the close, stop 0.5% beyond the wick,
        target the opposite line.
        """
        if signal_type is TriangleSignalType.BREAKOUT_RETEST and breakout and retest:
            direction = SignalDirection.from_direction(breakout.direction)
            entry = retest.retest_price
            if direction is SignalDirection.BUY:
                stop = triangle.upper_line.price_at(retest.retest_index) * (1 - HOLD_TOLERANCE)
                target = entry + triangle.height
            else:
                stop = triangle.lower_line.price_at(retest.retest_index) * (1 + HOLD_TOLERANCE)
                target = entry - triangle.height
            return TriangleSignal(
                type=signal_type,
                triangle_id=triangle.id,
                direction=direction,
                entry_price=entry,
                stop_loss=stop,
                take_profit=target,
                confidence=0.85,
                reasoning=(
                    f"Triangle breakout {breakout.direction.value} with retest. "
                    f"Line holds on weak pullback, entering with the breakout."
                ),
            )

        if signal_type is TriangleSignalType.FALSE_BREAKOUT and false_breakout:
            direction = SignalDirection.from_direction(false_breakout.fake_direction.opposite)
            candle = candles[false_breakout.index]
            entry = candle.close
            if direction is SignalDirection.BUY:
                stop = candle.low * (1 - HOLD_TOLERANCE)
                target = triangle.upper_line.price_at(false_breakout.index)
            else:
                stop = candle.high * (1 + HOLD_TOLERANCE)
                target = triangle.lower_line.price_at(false_breakout.index)
            return TriangleSignal(
                type=signal_type,
                triangle_id=triangle.id,
                direction=direction,
                entry_price=entry,
                stop_loss=stop,
                take_profit=target,
                confidence=0.75,
                reasoning=(
                    f"False triangle breakout {false_breakout.fake_direction.value}. "
                    f"Price closed back inside, entering the opposite way."
                ),
            )

        return None

    def validate_signal(self, signal: TriangleSignal) -> TriangleSignalValidation:
        """Reject cramped targets and stops placed too tight or too wide."""
        reasons: List[str] = []
        risk = abs(signal.entry_price - signal.stop_loss)
        reward = abs(signal.take_profit - signal.entry_price)

        if risk == 0:
            reasons.append("Stop loss equals entry")
            return TriangleSignalValidation(is_valid=False, reasons=reasons)

        risk_reward = reward / risk
        if risk_reward < MIN_RISK_REWARD:
            reasons.append(f"Not enough room to target (R:R = {risk_reward:.2f})")

        stop_distance = risk / abs(signal.entry_price)
        if stop_distance < MIN_STOP_DISTANCE:
            reasons.append(f"Stop too close ({stop_distance:.2%} < {MIN_STOP_DISTANCE:.1%})")
        if stop_distance > MAX_STOP_DISTANCE:
            reasons.append(f"Stop too far ({stop_distance:.2%} > {MAX_STOP_DISTANCE:.0%})")

        return TriangleSignalValidation(is_valid=not reasons, reasons=reasons)

    # =========================================================================
    # Latest setup
    # =========================================================================

    def find_setup(self, candles: Sequence[Candlestick]) -> Optional[TriangleSetup]:
        """
        Most recent triangle and its resolution.

        Resolutions are searched only after the triangle's last touch.
        A breakout takes precedence over a false breakout.
        """
        triangles = self.detect_triangles(candles)
        if not triangles:
            return None

        triangle = triangles[-1]
        setup = TriangleSetup(triangle=triangle)
        last_touch = max(i for i, _ in triangle.upper_line.points + triangle.lower_line.points)
        last = len(candles) - 1

        for i in range(last_touch + 1, min(triangle.end_index + BREAKOUT_WINDOW, last) + 1):
            breakout = self.detect_breakout(candles, triangle, i)
            if breakout:
                setup.breakout = breakout
                break

        if setup.breakout:
            b = setup.breakout.breakout_index
            for i in range(b + 1, min(b + RETEST_WINDOW, last) + 1):
                retest = self.detect_retest(candles, triangle, setup.breakout, i)
                if retest:
                    setup.retest = retest
                    setup.signal = self.generate_signal(
                        candles, triangle, TriangleSignalType.BREAKOUT_RETEST,
                        breakout=setup.breakout, retest=retest,
                    )
                    break
        else:
            for i in range(last_touch + 1, min(triangle.end_index + FALSE_BREAKOUT_WINDOW, last) + 1):
                fake = self.detect_false_breakout(candles, triangle, i)
                if fake:
                    setup.false_breakout = fake
                    setup.signal = self.generate_signal(
                        candles, triangle, TriangleSignalType.FALSE_BREAKOUT, false_breakout=fake,
                    )
                    break

        if setup.signal:
            setup.validation = self.validate_signal(setup.signal)

        return setup
