"""
Liquidity Models - Candles, pools, sweeps, structure changes and signals.

Pools, sweeps and structure changes are FACTS about the candle history.
Only TradingSignal carries an opinion, and it exists only when every
gate check has passed.
"""
import hashlib
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def to_utc_datetime(value: Any) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Numbers are epoch milliseconds, strings are ISO-8601 (a trailing "Z"
    is accepted), naive datetimes are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def content_id(*parts: Any) -> str:
    """Deterministic short id from the defining fields of a record."""
    content = ":".join(str(p) for p in parts)
    return hashlib.md5(content.encode()).hexdigest()[:12]


# =============================================================================
# Enumerations
# =============================================================================

class PoolType(str, Enum):
    """Kinds of liquidity pool."""
    EQUAL_HIGHS = "equal_highs"
    EQUAL_LOWS = "equal_lows"
    PDH = "pdh"
    PDL = "pdl"
    ASIAN_HIGH = "asian_high"
    ASIAN_LOW = "asian_low"
    RANGE_HIGH = "range_high"
    RANGE_LOW = "range_low"
    TRENDLINE_HIGH = "trendline_high"
    TRENDLINE_LOW = "trendline_low"
    TRIANGLE_UPPER = "triangle_upper"
    TRIANGLE_LOWER = "triangle_lower"

    @property
    def is_high(self) -> bool:
        """Buy-side pool resting above price."""
        return self in _HIGH_SIDE

    @property
    def is_low(self) -> bool:
        return not self.is_high


_HIGH_SIDE = frozenset({
    PoolType.EQUAL_HIGHS,
    PoolType.PDH,
    PoolType.ASIAN_HIGH,
    PoolType.RANGE_HIGH,
    PoolType.TRENDLINE_HIGH,
    PoolType.TRIANGLE_UPPER,
})


class PoolStatus(str, Enum):
    ACTIVE = "active"
    SWEPT = "swept"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"

    @property
    def opposite(self) -> "Direction":
        return Direction.DOWN if self is Direction.UP else Direction.UP


class StructureType(str, Enum):
    """CHOCH = trend reversal, BOS = continuation."""
    CHOCH = "CHOCH"
    BOS = "BOS"


class Trend(str, Enum):
    UPTREND = "uptrend"
    DOWNTREND = "downtrend"
    RANGE = "range"


class SignalDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_direction(cls, direction: Direction) -> "SignalDirection":
        return cls.BUY if direction is Direction.UP else cls.SELL

    @property
    def direction(self) -> Direction:
        return Direction.UP if self is SignalDirection.BUY else Direction.DOWN


class TradingSession(str, Enum):
    ASIAN = "ASIAN"
    LONDON = "LONDON"
    NEW_YORK = "NEW_YORK"
    OVERLAP = "OVERLAP"


# =============================================================================
# Candles
# =============================================================================

@dataclass(frozen=True)
class Candlestick:
    """Single OHLCV bar. Timestamps are UTC."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "timestamp", to_utc_datetime(self.timestamp))

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def is_finite(self) -> bool:
        return all(
            math.isfinite(v)
            for v in (self.open, self.high, self.low, self.close, self.volume)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candlestick":
        return cls(
            timestamp=to_utc_datetime(data["timestamp"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data.get("volume") or 0.0),
        )


# =============================================================================
# Liquidity records
# =============================================================================

@dataclass
class LiquidityPool:
    """
    A price level where resting stops are inferred to cluster.

    Status is the only mutable field and only the store changes it,
    one way, from ACTIVE to SWEPT.
    """

    type: PoolType
    price: float
    timestamp: datetime
    candle_indices: List[int] = field(default_factory=list)
    strength: int = 1
    status: PoolStatus = PoolStatus.ACTIVE
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = content_id(self.type.value, round(self.price, 8), self.timestamp.isoformat())

    @property
    def is_active(self) -> bool:
        return self.status is PoolStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "candle_indices": list(self.candle_indices),
            "strength": self.strength,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LiquidityPool":
        return cls(
            id=data.get("id", ""),
            type=PoolType(data["type"]),
            price=float(data["price"]),
            timestamp=to_utc_datetime(data["timestamp"]),
            candle_indices=list(data.get("candle_indices", [])),
            strength=int(data.get("strength", 1)),
            status=PoolStatus(data.get("status", PoolStatus.ACTIVE.value)),
        )

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.price:.5f} x{self.strength} ({self.status.value})"


@dataclass(frozen=True)
class LiquiditySweep:
    """A stop hunt: price ran a pool and closed back on the original side."""

    pool_id: str
    pool_type: PoolType
    sweep_price: float
    timestamp: datetime
    candle_index: int
    wick_size: float           # rejection wick / candle range
    direction: Direction       # UP for buy-side pools, DOWN for sell-side
    rejection_strength: float  # body / candle range
    id: str = ""

    def __post_init__(self):
        if not self.id:
            object.__setattr__(self, "id", content_id(self.pool_id, self.timestamp.isoformat()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pool_id": self.pool_id,
            "pool_type": self.pool_type.value,
            "sweep_price": self.sweep_price,
            "timestamp": self.timestamp.isoformat(),
            "candle_index": self.candle_index,
            "wick_size": self.wick_size,
            "direction": self.direction.value,
            "rejection_strength": self.rejection_strength,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LiquiditySweep":
        return cls(
            id=data.get("id", ""),
            pool_id=data["pool_id"],
            pool_type=PoolType(data["pool_type"]),
            sweep_price=float(data["sweep_price"]),
            timestamp=to_utc_datetime(data["timestamp"]),
            candle_index=int(data["candle_index"]),
            wick_size=float(data["wick_size"]),
            direction=Direction(data["direction"]),
            rejection_strength=float(data["rejection_strength"]),
        )

    def __str__(self) -> str:
        return (
            f"Sweep {self.direction.value} of {self.pool_type.value} at "
            f"{self.sweep_price:.5f} (wick {self.wick_size:.0%})"
        )


@dataclass(frozen=True)
class StructureChange:
    """A trend transition confirmed at a swing point."""

    type: StructureType
    direction: Direction
    price: float
    timestamp: datetime
    candle_index: int
    previous_structure: Trend
    significance: float  # 0-1
    id: str = ""

    def __post_init__(self):
        if not self.id:
            object.__setattr__(self, "id", content_id(
                self.type.value, self.direction.value, round(self.price, 8), self.timestamp.isoformat()
            ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "direction": self.direction.value,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "candle_index": self.candle_index,
            "previous_structure": self.previous_structure.value,
            "significance": self.significance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureChange":
        return cls(
            id=data.get("id", ""),
            type=StructureType(data["type"]),
            direction=Direction(data["direction"]),
            price=float(data["price"]),
            timestamp=to_utc_datetime(data["timestamp"]),
            candle_index=int(data["candle_index"]),
            previous_structure=Trend(data["previous_structure"]),
            significance=float(data["significance"]),
        )

    def __str__(self) -> str:
        return f"{self.type.value} {self.direction.value} at {self.price:.5f}"


# =============================================================================
# Scoring and signals
# =============================================================================

@dataclass
class ScoreBreakdown:
    """Points per evidence category. Each is bounded by its weight."""
    sweep: float = 0.0
    structure: float = 0.0
    divergence: float = 0.0
    volume: float = 0.0
    htf: float = 0.0
    triangle: float = 0.0
    session: float = 0.0

    def total(self) -> float:
        return (
            self.sweep + self.structure + self.divergence + self.volume
            + self.htf + self.triangle + self.session
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "sweep": self.sweep,
            "structure": self.structure,
            "divergence": self.divergence,
            "volume": self.volume,
            "htf": self.htf,
            "triangle": self.triangle,
            "session": self.session,
        }


@dataclass
class SignalScore:
    total: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    components: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": round(self.total, 2),
            "breakdown": self.breakdown.to_dict(),
            "components": list(self.components),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignalScore":
        return cls(
            total=float(data["total"]),
            breakdown=ScoreBreakdown(**data.get("breakdown", {})),
            components=list(data.get("components", [])),
        )


@dataclass
class TradingSignal:
    """Directional trade idea emitted when the decision gate fully passes."""

    symbol: str
    direction: SignalDirection
    score: SignalScore
    timestamp: datetime
    entry_price: float
    stop_loss: float
    take_profit: float
    reasoning: str = ""
    sweep_id: Optional[str] = None
    structure_change_id: Optional[str] = None
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = content_id(
                self.symbol, self.direction.value, self.timestamp.isoformat(), self.sweep_id, self.structure_change_id
            )

    @property
    def risk_reward(self) -> float:
        risk = abs(self.entry_price - self.stop_loss)
        reward = abs(self.take_profit - self.entry_price)
        return round(reward / risk, 2) if risk > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "score": self.score.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "sweep_id": self.sweep_id,
            "structure_change_id": self.structure_change_id,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "risk_reward": self.risk_reward,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradingSignal":
        return cls(
            id=data.get("id", ""),
            symbol=data["symbol"],
            direction=SignalDirection(data["direction"]),
            score=SignalScore.from_dict(data["score"]),
            timestamp=to_utc_datetime(data["timestamp"]),
            entry_price=float(data["entry_price"]),
            stop_loss=float(data["stop_loss"]),
            take_profit=float(data["take_profit"]),
            reasoning=data.get("reasoning", ""),
            sweep_id=data.get("sweep_id"),
            structure_change_id=data.get("structure_change_id"),
        )

    def __str__(self) -> str:
        return (
            f"{self.direction.value} {self.symbol} @ {self.entry_price:.5f} "
            f"SL {self.stop_loss:.5f} TP {self.take_profit:.5f} "
            f"(score {self.score.total:.1f})"
        )


@dataclass
class SwingPoint:
    """Local extreme beyond both neighbours on each side."""
    kind: str  # "high" or "low"
    price: float
    candle_index: int

    @property
    def is_high(self) -> bool:
        return self.kind == "high"
