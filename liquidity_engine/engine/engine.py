"""
Liquidity Engine - Orchestrator for liquidity analysis.

Runs the detectors over a candle window, records what they find in the
store and asks the decision gate whether the latest evidence forms a
trade:
- LiquidityPoolDetector: equal highs/lows, PDH/PDL, asian range, ranges,
  trendlines and triangle boundaries
- SweepDetector: stop hunts on the newest candle
- StructureAnalyzer: CHOCH/BOS transitions
- TriangleDetector: consolidation breakouts, retests and fakeouts
- DecisionGate: session-aware veto layer with scoring
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from liquidity_engine.core.liquidity_config import LiquidityConfig, load_config
from liquidity_engine.domain.liquidity import (
    Candlestick,
    LiquidityPool,
    LiquiditySweep,
    PoolType,
    SignalDirection,
    SignalScore,
    StructureChange,
    TradingSession,
    TradingSignal,
)
from liquidity_engine.domain.triangle import TriangleSetup
from liquidity_engine.engine.decision_gate import DecisionGate, GateResult
from liquidity_engine.services.store import LiquidityStore
from liquidity_engine.tools.indicators import calculate_atr, rsi
from liquidity_engine.tools.pools import LiquidityPoolDetector
from liquidity_engine.tools.sessions import get_trading_session
from liquidity_engine.tools.structure import StructureAnalyzer
from liquidity_engine.tools.sweeps import SweepDetector
from liquidity_engine.tools.triangle import TriangleDetector

logger = logging.getLogger(__name__)

CandleInput = Union[Candlestick, Mapping[str, Any]]

RSI_PERIOD = 14
RECENT_EVENTS = 5
HTF_POOL_TYPES = frozenset({PoolType.PDH, PoolType.PDL})


@dataclass
class AnalysisResult:
    """Everything one analysis pass knows about an instrument."""
    pools: List[LiquidityPool] = field(default_factory=list)
    sweeps: List[LiquiditySweep] = field(default_factory=list)
    structures: List[StructureChange] = field(default_factory=list)
    signal: Optional[TradingSignal] = None
    has_valid_setup: bool = False
    blocking_reasons: List[str] = field(default_factory=list)
    session: Optional[TradingSession] = None
    score: Optional[SignalScore] = None
    triangle: Optional[TriangleSetup] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pools": [p.to_dict() for p in self.pools],
            "sweeps": [s.to_dict() for s in self.sweeps],
            "structures": [s.to_dict() for s in self.structures],
            "signal": self.signal.to_dict() if self.signal else None,
            "has_valid_setup": self.has_valid_setup,
            "blocking_reasons": list(self.blocking_reasons),
            "session": self.session.value if self.session else None,
            "score": self.score.to_dict() if self.score else None,
            "triangle": self.triangle.to_dict() if self.triangle else None,
        }


@dataclass
class ExternalSignalValidation:
    """Whether recorded liquidity events back a third-party signal."""
    is_valid: bool
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "reasons": list(self.reasons)}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LiquidityEngine:
    """
    Liquidity analysis for a single instrument.

    One engine owns one store. Calls for the same engine must be
    serialized; independent engines may run side by side.
    """

    def __init__(
        self,
        config: Optional[Union[LiquidityConfig, Mapping[str, Any]]] = None,
        store: Optional[LiquidityStore] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            config: LiquidityConfig or overrides for the defaults
            store: Store to record into; a fresh one when omitted
            clock: Returns the current UTC time; drives session selection
        """
        self.config = load_config(config)
        self.store = store or LiquidityStore(clock=clock)
        self._clock = clock or _utc_now

        self.pool_detector = LiquidityPoolDetector(self.config)
        self.sweep_detector = SweepDetector(self.config.min_wick_size)
        self.structure_analyzer = StructureAnalyzer(self.config.swing_lookback)
        self.triangle_detector = TriangleDetector(self.config.triangle_lookback)
        self.gate = DecisionGate(self.config)

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(
        self,
        symbol: str,
        candles: Sequence[CandleInput],
        rsi_series: Optional[Sequence[float]] = None,
        htf_pools: Optional[Sequence[LiquidityPool]] = None
    ) -> AnalysisResult:
        """
        Full analysis pass over a candle window.

        Args:
            symbol: Instrument name, carried into the signal
            candles: Chronological OHLCV bars (Candlestick or dicts)
            rsi_series: RSI ending at the newest candle; computed from
                closes when omitted
            htf_pools: Higher-timeframe levels; defaults to the recorded
                PDH/PDL pools

        Returns:
            AnalysisResult with the store's pools, sweeps and structures,
            plus a signal or the reasons none was produced
        """
        now = self._clock()
        session = get_trading_session(now)
        try:
            candles = [c if isinstance(c, Candlestick) else Candlestick.from_dict(c) for c in candles]
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning(f"{symbol}: rejected candle input: {e!r}")
            return AnalysisResult(session=session, blocking_reasons=[f"Invalid candle data: {e!r}"])

        if len(candles) < self.config.min_candles:
            return AnalysisResult(
                session=session,
                blocking_reasons=[
                    f"Insufficient data for analysis: {len(candles)} candles, "
                    f"at least {self.config.min_candles} required"
                ],
            )

        # 1. Candle window
        self.store.update_candles(candles)

        # 2. Pools, triangle boundaries included
        setup = self.triangle_detector.find_setup(candles)
        pools = self.pool_detector.detect(candles)
        if setup is not None:
            pools.extend(self.pool_detector.triangle_pools(setup.triangle, candles))
        new_pools = self._register_pools(pools)

        # 3. At most one sweep on the newest candle
        last_index = len(candles) - 1
        sweep = self.sweep_detector.detect_sweep(
            candles[last_index], self.store.get_active_pools(), candle_index=last_index
        )
        if sweep is not None and not any(s.id == sweep.id for s in self.store.get_state().sweeps):
            self.store.add_sweep(sweep)

        # 4. Structure
        new_structures = self._register_structures(self.structure_analyzer.analyze_structure(candles))

        logger.debug(
            f"{symbol}: {new_pools} new pools, sweep={sweep is not None}, "
            f"{new_structures} new structure changes"
        )

        # 5. Decision gate
        gate = self._run_gate(candles, rsi_series, htf_pools, setup, now)
        signal = None
        reasons = list(gate.reasons)

        if gate.passed:
            signal = self._build_signal(symbol, candles, gate)
            if signal is None:
                reasons.append("Cannot place stop: ATR is zero")
            else:
                self._record_signal(signal)

        state = self.store.get_state()
        return AnalysisResult(
            pools=state.pools,
            sweeps=state.sweeps,
            structures=state.structures,
            signal=signal,
            has_valid_setup=signal is not None,
            blocking_reasons=[] if signal else reasons,
            session=gate.session,
            score=gate.score,
            triangle=setup,
        )

    def _register_pools(self, pools: Sequence[LiquidityPool]) -> int:
        added = 0
        for pool in pools:
            if not self.store.has_pool(pool.id):
                self.store.add_pool(pool)
                added += 1
        return added

    def _register_structures(self, changes: Sequence[StructureChange]) -> int:
        known = {s.id for s in self.store.get_state().structures}
        added = 0
        for change in changes:
            if change.id not in known:
                self.store.add_structure_change(change)
                known.add(change.id)
                added += 1
        return added

    def _run_gate(
        self,
        candles: List[Candlestick],
        rsi_series: Optional[Sequence[float]],
        htf_pools: Optional[Sequence[LiquidityPool]],
        setup: Optional[TriangleSetup],
        now: datetime
    ) -> GateResult:
        state = self.store.get_state()
        sweep = state.sweeps[-1] if state.sweeps else None
        structure = state.structures[-1] if state.structures else None
        pool = self.store.get_pool(sweep.pool_id) if sweep else None

        closes = [c.close for c in candles]
        volumes = [c.volume for c in candles]
        rsi_history = list(rsi_series) if rsi_series is not None else rsi(closes, RSI_PERIOD)
        price_history = closes[-len(rsi_history):] if rsi_history else None

        if htf_pools is None:
            htf_pools = [p for p in state.pools if p.type in HTF_POOL_TYPES]

        return self.gate.evaluate(
            now,
            candles[-1],
            sweep,
            structure,
            pool,
            volumes[:-1],
            rsi_history,
            price_history=price_history,
            htf_pools=htf_pools,
            triangle_data=setup.score_inputs() if setup else None,
        )

    # =========================================================================
    # Signal construction
    # =========================================================================

    def _build_signal(self, symbol: str, candles: List[Candlestick], gate: GateResult) -> Optional[TradingSignal]:
        """ATR stop and fixed reward:risk target from the newest close."""
        state = self.store.get_state()
        sweep = state.sweeps[-1]
        structure = state.structures[-1]
        candle = candles[-1]

        atr = calculate_atr(candles, self.config.atr_period)
        risk = atr * self.config.atr_stop_multiplier
        if not math.isfinite(risk) or risk <= 0:
            return None

        entry = candle.close
        if gate.direction is SignalDirection.BUY:
            stop_loss = entry - risk
            take_profit = entry + risk * self.config.reward_risk_ratio
        else:
            stop_loss = entry + risk
            take_profit = entry - risk * self.config.reward_risk_ratio

        return TradingSignal(
            symbol=symbol,
            direction=gate.direction,
            score=gate.score,
            timestamp=candle.timestamp,
            entry_price=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reasoning=self._reasoning(sweep, structure, gate.score),
            sweep_id=sweep.id,
            structure_change_id=structure.id,
        )

    @staticmethod
    def _reasoning(sweep: LiquiditySweep, structure: StructureChange, score: SignalScore) -> str:
        parts = [
            f"Liquidity sweep at {sweep.sweep_price:.2f} (wick {sweep.wick_size:.0%})",
            f"{structure.type.value} {structure.direction.value}",
        ]
        if score.breakdown.volume > 0:
            parts.append("Volume confirmation")
        if score.breakdown.htf > 0:
            parts.append("HTF level confluence")
        if score.breakdown.divergence > 0:
            parts.append("RSI divergence")
        if score.breakdown.triangle > 0:
            parts.append("Triangle pattern")
        return ". ".join(parts) + "."

    def _record_signal(self, signal: TradingSignal) -> None:
        if any(s.id == signal.id for s in self.store.get_state().signals):
            return
        self.store.add_signal(signal)
        logger.info(f"Signal: {signal}")

    # =========================================================================
    # External signals
    # =========================================================================

    def validate_external_signal(
        self,
        direction: Union[SignalDirection, str],
        price: float
    ) -> ExternalSignalValidation:
        """
        Check a third-party signal against the last recorded events.

        A BUY needs a recent downward sweep and an upward structure
        change; a SELL needs the mirror.
        """
        direction = SignalDirection(direction)
        reasons: List[str] = []

        if not math.isfinite(price) or price <= 0:
            reasons.append(f"Invalid signal price: {price}")

        state = self.store.get_state()
        wanted_sweep = direction.direction.opposite
        if not any(s.direction is wanted_sweep for s in state.sweeps[-RECENT_EVENTS:]):
            reasons.append("No confirming liquidity sweep")

        if not any(s.direction is direction.direction for s in state.structures[-RECENT_EVENTS:]):
            reasons.append("No structure confirmation")

        return ExternalSignalValidation(is_valid=not reasons, reasons=reasons)

    # =========================================================================
    # Store access
    # =========================================================================

    def get_store(self) -> LiquidityStore:
        return self.store

    def reset(self) -> None:
        self.store.reset()
