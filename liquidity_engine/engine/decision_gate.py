"""
Decision Gate - Hard veto layer for liquidity signals.

Detectors report facts. The gate decides whether those facts add up
to a trade:
- Every session demands its own minimum score
- No sweep or no structure change = automatic rejection
- Sweep and structure must point in opposite directions
- The swept level must pass breakout validation in the trade direction

Checks run in order and stop at the first failure.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from liquidity_engine.core.liquidity_config import LiquidityConfig
from liquidity_engine.domain.liquidity import (
    Candlestick,
    Direction,
    LiquidityPool,
    LiquiditySweep,
    SignalDirection,
    SignalScore,
    StructureChange,
    TradingSession,
)
from liquidity_engine.services.scorer import SignalScorer
from liquidity_engine.tools.breakout import BreakoutValidator
from liquidity_engine.tools.sessions import get_trading_session, session_threshold


@dataclass
class GateResult:
    """Outcome of one pass through the gate."""
    session: TradingSession
    threshold: float
    passed: bool = False
    direction: Optional[SignalDirection] = None
    score: Optional[SignalScore] = None
    reasons: List[str] = field(default_factory=list)

    def reject(self, *reasons: str) -> "GateResult":
        self.passed = False
        self.reasons.extend(reasons)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "session": self.session.value,
            "threshold": self.threshold,
            "direction": self.direction.value if self.direction else None,
            "score": self.score.to_dict() if self.score else None,
            "reasons": list(self.reasons),
        }


def corroborated_direction(sweep: LiquiditySweep, structure: StructureChange) -> Optional[SignalDirection]:
    """
    BUY when sell-side liquidity was taken and structure turned up,
    SELL for the mirror case, None when the two disagree.
    """
    if sweep.direction is Direction.DOWN and structure.direction is Direction.UP:
        return SignalDirection.BUY
    if sweep.direction is Direction.UP and structure.direction is Direction.DOWN:
        return SignalDirection.SELL
    return None


class DecisionGate:
    """
    Hard gate for signal candidates.

    Detectors propose. The gate approves or vetoes.
    """

    def __init__(
        self,
        config: LiquidityConfig,
        scorer: Optional[SignalScorer] = None,
        validator: Optional[BreakoutValidator] = None
    ):
        self.config = config
        self.scorer = scorer or SignalScorer(config.score_weights)
        self.validator = validator or BreakoutValidator(config.volume_spike_multiplier)

    def evaluate(
        self,
        now: datetime,
        candle: Candlestick,
        sweep: Optional[LiquiditySweep],
        structure: Optional[StructureChange],
        pool: Optional[LiquidityPool],
        volume_history: Sequence[float],
        rsi_history: Sequence[float],
        price_history: Optional[Sequence[float]] = None,
        htf_pools: Sequence[LiquidityPool] = (),
        triangle_data: Optional[Dict[str, Any]] = None
    ) -> GateResult:
        """
        Run the ordered checks against the latest evidence.

        Args:
            now: Decision time; selects the session and its threshold
            candle: Newest candle
            sweep: Latest recorded sweep
            structure: Latest recorded structure change
            pool: The pool referenced by `sweep`
            volume_history: Volumes before `candle`
            rsi_history: RSI ending at `candle`
            price_history: Closes aligned with `rsi_history`
            htf_pools: Higher-timeframe levels for the proximity bonus
            triangle_data: TriangleSetup.score_inputs() of the latest setup

        Returns:
            GateResult; `passed` only when every check succeeded
        """
        # 1. Session threshold
        session = get_trading_session(now)
        threshold = session_threshold(session, self.config.session_thresholds)
        result = GateResult(session=session, threshold=threshold)

        # 2. Sweep
        if sweep is None:
            return result.reject("No liquidity sweep")

        # 3. Structure
        if structure is None:
            return result.reject("No structure confirmation (CHOCH/BOS)")

        # 4. Corroboration
        direction = corroborated_direction(sweep, structure)
        if direction is None:
            return result.reject(
                f"Sweep {sweep.direction.value} and structure {structure.direction.value} "
                f"do not confirm each other"
            )
        result.direction = direction

        # 5. Breakout validation on the swept level
        if pool is None:
            return result.reject(f"Swept pool {sweep.pool_id} is not in the store")

        validation = self.validator.validate_breakout(
            candle,
            pool,
            volume_history,
            rsi_history,
            price_history=price_history,
            direction=direction.direction,
        )
        if not validation.is_valid:
            return result.reject(*validation.reasons)

        # 6. Score against the session threshold
        score = self.scorer.calculate_score(
            sweep,
            structure,
            candle,
            volume_history,
            rsi_history,
            htf_pools,
            price_history=price_history,
            triangle_data=triangle_data,
            session=session,
        )
        result.score = score
        if score.total < threshold:
            return result.reject(
                f"Score too low for {session.value} session: "
                f"{score.total:.1f}/{threshold:g} (requires >= {threshold:g})"
            )

        result.passed = True
        return result
