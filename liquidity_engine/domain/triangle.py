"""Triangle pattern models: fitted lines, resolutions and derived signals."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from liquidity_engine.domain.liquidity import Direction, SignalDirection, content_id


class TriangleSignalType(str, Enum):
    BREAKOUT_RETEST = "breakout_retest"
    FALSE_BREAKOUT = "false_breakout"


@dataclass
class TriangleLine:
    """Least-squares line through swing touches, in candle-index coordinates."""
    points: List[Tuple[int, float]]
    slope: float
    intercept: float

    def price_at(self, index: int) -> float:
        return self.slope * index + self.intercept

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [{"index": i, "price": p} for i, p in self.points],
            "slope": self.slope,
            "intercept": self.intercept,
        }


@dataclass
class Triangle:
    upper_line: TriangleLine
    lower_line: TriangleLine
    start_index: int
    end_index: int
    height: float
    compression_ratio: float
    is_converging: bool = True
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = content_id(
                "triangle",
                tuple(i for i, _ in self.upper_line.points),
                tuple(i for i, _ in self.lower_line.points),
            )

    @property
    def touch_signature(self) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        return (
            tuple(i for i, _ in self.upper_line.points),
            tuple(i for i, _ in self.lower_line.points),
        )

    @property
    def touches(self) -> int:
        return len(self.upper_line.points) + len(self.lower_line.points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "upper_line": self.upper_line.to_dict(),
            "lower_line": self.lower_line.to_dict(),
            "start_index": self.start_index,
            "end_index": self.end_index,
            "height": self.height,
            "compression_ratio": self.compression_ratio,
            "is_converging": self.is_converging,
        }


@dataclass
class TriangleBreakout:
    triangle_id: str
    direction: Direction
    breakout_index: int
    breakout_price: float
    is_body_breakout: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triangle_id": self.triangle_id,
            "direction": self.direction.value,
            "breakout_index": self.breakout_index,
            "breakout_price": self.breakout_price,
            "is_body_breakout": self.is_body_breakout,
        }


@dataclass
class TriangleRetest:
    triangle_id: str
    breakout_direction: Direction
    retest_index: int
    retest_price: float
    line_holds: bool
    weak_candles: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triangle_id": self.triangle_id,
            "breakout_direction": self.breakout_direction.value,
            "retest_index": self.retest_index,
            "retest_price": self.retest_price,
            "line_holds": self.line_holds,
            "weak_candles": self.weak_candles,
        }


@dataclass
class FalseBreakout:
    triangle_id: str
    fake_direction: Direction
    index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triangle_id": self.triangle_id,
            "fake_direction": self.fake_direction.value,
            "index": self.index,
        }


@dataclass
class TriangleSignal:
    type: TriangleSignalType
    triangle_id: str
    direction: SignalDirection
    entry_price: float
    stop_loss: float
    take_profit: float
    confidence: float
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "triangle_id": self.triangle_id,
            "direction": self.direction.value,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass
class TriangleSignalValidation:
    is_valid: bool
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "reasons": list(self.reasons)}


@dataclass
class TriangleSetup:
    """Most recent triangle and how price resolved it."""
    triangle: Triangle
    breakout: Optional[TriangleBreakout] = None
    retest: Optional[TriangleRetest] = None
    false_breakout: Optional[FalseBreakout] = None
    signal: Optional[TriangleSignal] = None
    validation: Optional[TriangleSignalValidation] = None

    def score_inputs(self) -> Dict[str, Any]:
        """Inputs consumed by the signal scorer."""
        return {
            "is_valid": True,
            "has_breakout": self.breakout is not None,
            "has_retest": self.retest is not None,
            "compression_ratio": self.triangle.compression_ratio,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triangle": self.triangle.to_dict(),
            "breakout": self.breakout.to_dict() if self.breakout else None,
            "retest": self.retest.to_dict() if self.retest else None,
            "false_breakout": self.false_breakout.to_dict() if self.false_breakout else None,
            "signal": self.signal.to_dict() if self.signal else None,
            "validation": self.validation.to_dict() if self.validation else None,
        }
