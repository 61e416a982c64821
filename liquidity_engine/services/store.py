"""
Liquidity Store

In-memory aggregate of pools, sweeps, structure changes, signals and
the current candle window, with synchronous change notification.

One writer per instrument: the store is not safe for concurrent mutation.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from liquidity_engine.domain.liquidity import (
    Candlestick,
    LiquidityPool,
    LiquiditySweep,
    PoolStatus,
    StructureChange,
    TradingSignal,
    to_utc_datetime,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoreState:
    pools: List[LiquidityPool] = field(default_factory=list)
    sweeps: List[LiquiditySweep] = field(default_factory=list)
    structures: List[StructureChange] = field(default_factory=list)
    signals: List[TradingSignal] = field(default_factory=list)
    candles: List[Candlestick] = field(default_factory=list)
    last_update: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pools": [p.to_dict() for p in self.pools],
            "sweeps": [s.to_dict() for s in self.sweeps],
            "structures": [s.to_dict() for s in self.structures],
            "signals": [s.to_dict() for s in self.signals],
            "candles": [c.to_dict() for c in self.candles],
            "last_update": self.last_update.isoformat(),
        }


Listener = Callable[[StoreState], None]

_RECORD_TYPES = {
    "pools": LiquidityPool,
    "sweeps": LiquiditySweep,
    "structures": StructureChange,
    "signals": TradingSignal,
    "candles": Candlestick,
}


class LiquidityStore:
    """
    Append-only logs of liquidity events plus the candle window.

    Every mutation notifies subscribers exactly once, synchronously,
    with a snapshot of the new state.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utc_now
        self._state = StoreState(last_update=self._clock())
        self._listeners: List[Listener] = []

    # =========================================================================
    # State
    # =========================================================================

    def get_state(self) -> StoreState:
        """Snapshot; the lists are copies, the records are shared."""
        return replace(
            self._state,
            pools=list(self._state.pools),
            sweeps=list(self._state.sweeps),
            structures=list(self._state.structures),
            signals=list(self._state.signals),
            candles=list(self._state.candles),
        )

    def _touch(self) -> None:
        self._state.last_update = self._clock()
        self._notify()

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_pool(self, pool: LiquidityPool) -> None:
        self._state.pools.append(pool)
        self._touch()

    def add_sweep(self, sweep: LiquiditySweep) -> None:
        """Record a sweep and flip the referenced pool to swept."""
        self._state.sweeps.append(sweep)
        self._mark_swept(sweep.pool_id)
        self._touch()

    def _mark_swept(self, pool_id: str) -> None:
        for pool in self._state.pools:
            if pool.id == pool_id:
                pool.status = PoolStatus.SWEPT

    def add_structure_change(self, change: StructureChange) -> None:
        self._state.structures.append(change)
        self._touch()

    def add_signal(self, signal: TradingSignal) -> None:
        self._state.signals.append(signal)
        self._touch()

    def update_candles(self, candles: List[Candlestick]) -> None:
        self._state.candles = list(candles)
        self._touch()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_pool(self, pool_id: str) -> Optional[LiquidityPool]:
        return next((p for p in self._state.pools if p.id == pool_id), None)

    def has_pool(self, pool_id: str) -> bool:
        return self.get_pool(pool_id) is not None

    def get_active_pools(self) -> List[LiquidityPool]:
        return [p for p in self._state.pools if p.status is PoolStatus.ACTIVE]

    def get_swept_pools(self) -> List[LiquidityPool]:
        return [p for p in self._state.pools if p.status is PoolStatus.SWEPT]

    def get_sweeps_in_range(self, start: datetime, end: datetime) -> List[LiquiditySweep]:
        start, end = to_utc_datetime(start), to_utc_datetime(end)
        return [s for s in self._state.sweeps if start <= s.timestamp <= end]

    def get_structures_in_range(self, start: datetime, end: datetime) -> List[StructureChange]:
        start, end = to_utc_datetime(start), to_utc_datetime(end)
        return [s for s in self._state.structures if start <= s.timestamp <= end]

    def get_signals_in_range(self, start: datetime, end: datetime) -> List[TradingSignal]:
        start, end = to_utc_datetime(start), to_utc_datetime(end)
        return [s for s in self._state.signals if start <= s.timestamp <= end]

    def get_recent_signals(self, count: int) -> List[TradingSignal]:
        """Newest `count` signals, newest first. Stored order is untouched."""
        ordered = sorted(self._state.signals, key=lambda s: s.timestamp, reverse=True)
        return ordered[:max(count, 0)]

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def cleanup_old_data(self, days_to_keep: float, now: Optional[datetime] = None) -> None:
        """Drop every record older than `days_to_keep` days."""
        cutoff = to_utc_datetime(now or self._clock()) - timedelta(days=days_to_keep)
        state = self._state

        state.pools = [p for p in state.pools if p.timestamp >= cutoff]
        state.sweeps = [s for s in state.sweeps if s.timestamp >= cutoff]
        state.structures = [s for s in state.structures if s.timestamp >= cutoff]
        state.signals = [s for s in state.signals if s.timestamp >= cutoff]
        state.candles = [c for c in state.candles if c.timestamp >= cutoff]

        logger.debug(f"Store cleanup: cutoff {cutoff.isoformat()}")
        self._touch()

    def reset(self) -> None:
        self._state = StoreState(last_update=self._clock())
        self._notify()

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Store listener {listener!r} failed: {e}")

    # =========================================================================
    # Serialization
    # =========================================================================

    def export_to_json(self) -> str:
        return json.dumps(self._state.to_dict(), indent=2)

    def import_from_json(self, text: str) -> None:
        """
        Replace the collections present in `text`.

        Records are rebuilt from their dict form without cross-checking
        references. Collections absent from the payload are kept.

        Raises:
            ValueError: malformed JSON or records missing required fields
        """
        try:
            data = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError("Invalid JSON format") from e
        if not isinstance(data, dict):
            raise ValueError("Invalid JSON format")

        imported: Dict[str, list] = {}
        try:
            for key, record_type in _RECORD_TYPES.items():
                if key in data:
                    imported[key] = [record_type.from_dict(item) for item in data[key]]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid store snapshot: {e}") from e

        for key, records in imported.items():
            setattr(self._state, key, records)
        logger.info(f"Store imported: {', '.join(f'{k}={len(v)}' for k, v in imported.items())}")
        self._touch()

    def get_statistics(self) -> Dict[str, Any]:
        signals = self._state.signals
        avg_score = sum(s.score.total for s in signals) / len(signals) if signals else 0.0
        return {
            "total_pools": len(self._state.pools),
            "active_pools": len(self.get_active_pools()),
            "swept_pools": len(self.get_swept_pools()),
            "total_sweeps": len(self._state.sweeps),
            "total_structures": len(self._state.structures),
            "total_signals": len(signals),
            "avg_signal_score": round(avg_score, 2),
            "last_update": self._state.last_update.isoformat(),
        }
