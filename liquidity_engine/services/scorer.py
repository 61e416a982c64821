"""
Signal Scoring.

Combines the evidence behind a setup into one 0-100 score:
- Liquidity sweep       (weight.sweep)
- Structure change      (weight.bos)
- RSI divergence        (weight.divergence)
- Volume spike          (weight.volume)
- HTF level proximity   (weight.htf)
- Triangle pattern      (weight.triangle)
- Trading session       (weight.session)
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence

from liquidity_engine.core.liquidity_config import ScoreWeights
from liquidity_engine.domain.liquidity import (
    Candlestick,
    LiquidityPool,
    LiquiditySweep,
    ScoreBreakdown,
    SignalScore,
    StructureChange,
    StructureType,
    TradingSession,
)
from liquidity_engine.tools.indicators import (
    average_volume,
    detect_rsi_divergence,
    divergence_magnitude,
)

MAX_SCORE = 100.0
VOLUME_SPIKE_MIN = 1.5
VOLUME_SPIKE_MAX = 3.0
HTF_PROXIMITY = 0.01

SESSION_FACTORS = {
    TradingSession.OVERLAP: 1.0,
    TradingSession.LONDON: 0.7,
    TradingSession.NEW_YORK: 0.7,
    TradingSession.ASIAN: 0.3,
}


class SignalScorer:
    """Weighted, capped evidence scoring."""

    def __init__(self, weights: Optional[ScoreWeights] = None):
        self.weights = weights or ScoreWeights()

    def calculate_score(
        self,
        sweep: Optional[LiquiditySweep],
        structure_change: Optional[StructureChange],
        candle: Candlestick,
        volume_history: Sequence[float],
        rsi_history: Sequence[float],
        htf_pools: Iterable[LiquidityPool],
        price_history: Optional[Sequence[float]] = None,
        triangle_data: Optional[Dict[str, Any]] = None,
        session: Optional[TradingSession] = None
    ) -> SignalScore:
        """
        Score a candidate setup.

        Components are added in a fixed order and each is clipped to the
        room left under 100, so the total always equals the sum of the
        breakdown and never exceeds 100.

        Args:
            sweep: Triggering sweep, if any
            structure_change: Confirming structure change, if any
            candle: Current candle
            volume_history: Volumes before `candle`
            rsi_history: RSI ending at `candle`
            htf_pools: Higher-timeframe reference levels
            price_history: Closes ending at `candle`, for divergence
            triangle_data: Output of TriangleSetup.score_inputs()
            session: Active trading session

        Returns:
            SignalScore with breakdown and human-readable components
        """
        breakdown = ScoreBreakdown()
        components: List[str] = []
        room = MAX_SCORE

        def add(category: str, points: float, label: str) -> None:
            nonlocal room
            points = max(0.0, min(points, room))
            if points <= 0:
                return
            setattr(breakdown, category, points)
            room -= points
            components.append(f"{label} ({points:.1f})")

        if sweep is not None:
            add("sweep", self.score_sweep(sweep), "Liquidity Sweep")

        if structure_change is not None:
            add("structure", self.score_structure(structure_change), structure_change.type.value)

        if price_history is not None:
            add("divergence", self.score_divergence(price_history, rsi_history), "RSI Divergence")

        if volume_history:
            add("volume", self.score_volume(candle.volume, volume_history), "Volume Spike")

        htf_pools = list(htf_pools)
        if htf_pools:
            add("htf", self.score_htf_level(candle, htf_pools), "HTF Level")

        if triangle_data:
            add("triangle", self.score_triangle(triangle_data), "Triangle Pattern")

        if session is not None:
            add("session", self.score_session(session), f"{session.value} Session")

        return SignalScore(total=breakdown.total(), breakdown=breakdown, components=components)

    def score_sweep(self, sweep: LiquiditySweep) -> float:
        """40% for presence, up to 30% for wick size and 30% for rejection."""
        w = self.weights.sweep
        return w * 0.4 + w * 0.3 * sweep.wick_size + w * 0.3 * sweep.rejection_strength

    def score_structure(self, change: StructureChange) -> float:
        """CHOCH earns 70% of the weight, BOS 50%, plus up to 30% for significance."""
        w = self.weights.bos
        base = 0.7 if change.type is StructureType.CHOCH else 0.5
        return w * base + w * 0.3 * change.significance

    def score_divergence(self, prices: Sequence[float], rsi_values: Sequence[float]) -> float:
        if detect_rsi_divergence(prices, rsi_values) is None:
            return 0.0
        return self.weights.divergence * divergence_magnitude(rsi_values)

    def score_volume(self, current_volume: float, volume_history: Sequence[float]) -> float:
        """Zero below a 1.5x spike, full weight from 3x."""
        avg = average_volume(volume_history, 20)
        if avg <= 0:
            return 0.0
        ratio = current_volume / avg
        if ratio < VOLUME_SPIKE_MIN:
            return 0.0
        scaled = min((ratio - VOLUME_SPIKE_MIN) / (VOLUME_SPIKE_MAX - VOLUME_SPIKE_MIN), 1.0)
        return self.weights.volume * scaled

    def score_htf_level(self, candle: Candlestick, htf_pools: Sequence[LiquidityPool]) -> float:
        """Full weight at an HTF level, fading to zero at 1% away."""
        if candle.close == 0 or not htf_pools:
            return 0.0
        nearest = min(abs(candle.close - p.price) / abs(candle.close) for p in htf_pools)
        if nearest > HTF_PROXIMITY:
            return 0.0
        return self.weights.htf * (1 - nearest / HTF_PROXIMITY)

    def score_triangle(self, triangle_data: Dict[str, Any]) -> float:
        if not triangle_data.get("is_valid"):
            return 0.0
        w = self.weights.triangle
        score = 0.0
        if triangle_data.get("compression_ratio", 1.0) < 0.7:
            score += w * 0.5
        if triangle_data.get("has_breakout") and triangle_data.get("has_retest"):
            score += w * 0.5
        elif triangle_data.get("has_breakout"):
            score += w * 0.3
        return score

    def score_session(self, session: TradingSession) -> float:
        return self.weights.session * SESSION_FACTORS[session]

    def generate_score_explanation(self, score: SignalScore) -> str:
        """Multi-line breakdown of a score against the configured weights."""
        lines = [f"Total Score: {score.total:.1f}/100", "", "Breakdown:"]
        rows = (
            ("Liquidity Sweep", score.breakdown.sweep, self.weights.sweep),
            ("Structure Change", score.breakdown.structure, self.weights.bos),
            ("RSI Divergence", score.breakdown.divergence, self.weights.divergence),
            ("Volume Spike", score.breakdown.volume, self.weights.volume),
            ("HTF Level", score.breakdown.htf, self.weights.htf),
            ("Triangle Pattern", score.breakdown.triangle, self.weights.triangle),
            ("Session", score.breakdown.session, self.weights.session),
        )
        for label, points, weight in rows:
            if points > 0:
                lines.append(f"  - {label}: {points:.1f}/{weight:g}")
        return "\n".join(lines)
