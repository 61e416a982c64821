"""
Candle input validation.

Detectors tolerate malformed bars by skipping them. This module is the
opt-in strict path: it reports every violation so callers can reject the
batch before analysis.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Sequence, Union

from liquidity_engine.core.exceptions import CandleValidationError
from liquidity_engine.domain.liquidity import Candlestick, to_utc_datetime

PRICE_FIELDS = ("open", "high", "low", "close")
NUMERIC_FIELDS = PRICE_FIELDS + ("volume",)

CandleLike = Union[Candlestick, Mapping[str, Any]]


@dataclass
class CandleValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


def _as_mapping(candle: CandleLike) -> Mapping[str, Any]:
    if isinstance(candle, Candlestick):
        return {
            "timestamp": candle.timestamp,
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
        }
    return candle


def _to_number(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_candlestick(candle: CandleLike) -> CandleValidationResult:
    """
    Validate a single candle.

    Checks required fields, numeric values, non-negativity and that
    open/close sit inside the high-low range.
    """
    data = _as_mapping(candle)
    errors: List[str] = []

    if data.get("timestamp") is None:
        errors.append("timestamp is required")
    else:
        try:
            to_utc_datetime(data["timestamp"])
        except (TypeError, ValueError, OverflowError, OSError):
            errors.append("timestamp must be a valid epoch-ms number or ISO-8601 string")

    values: Dict[str, float] = {}
    for name in NUMERIC_FIELDS:
        raw = data.get(name)
        if raw is None:
            errors.append(f"{name} is required")
            continue
        number = _to_number(raw)
        if number is None or math.isnan(number):
            errors.append(f"{name} must be a valid number")
            continue
        if number < 0:
            errors.append(f"{name} cannot be negative")
        values[name] = number

    if all(name in values for name in PRICE_FIELDS):
        high, low = values["high"], values["low"]
        if high < low:
            errors.append("high cannot be less than low")
        for name in ("close", "open"):
            if values[name] > high:
                errors.append(f"{name} must be within high-low range ({name} > high)")
            if values[name] < low:
                errors.append(f"{name} must be within high-low range ({name} < low)")

    return CandleValidationResult(is_valid=not errors, errors=errors)


def _timestamp_or_none(candle: CandleLike):
    try:
        return to_utc_datetime(_as_mapping(candle).get("timestamp"))
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def validate_candlesticks(candles: Sequence[CandleLike]) -> CandleValidationResult:
    """
    Validate a candle batch.

    Per-candle errors are prefixed with "Candle {index}: ". An ordering
    violation is reported once, at the first out-of-order candle.
    """
    if not isinstance(candles, (list, tuple)):
        return CandleValidationResult(is_valid=False, errors=["candles must be a list"])
    if not candles:
        return CandleValidationResult(is_valid=False, errors=["candles list cannot be empty"])

    errors: List[str] = []
    for index, candle in enumerate(candles):
        result = validate_candlestick(candle)
        errors.extend(f"Candle {index}: {error}" for error in result.errors)

    previous: datetime = None
    for index, candle in enumerate(candles):
        current = _timestamp_or_none(candle)
        if current is None:
            continue
        if previous is not None and current < previous:
            errors.append(
                f"Candles must be in chronological order "
                f"(candle {index} timestamp < candle {index - 1} timestamp)"
            )
            break
        previous = current

    return CandleValidationResult(is_valid=not errors, errors=errors)


def parse_candles(candles: Sequence[CandleLike]) -> List[Candlestick]:
    """
    Validate and convert a batch to Candlestick objects.

    Raises:
        CandleValidationError: with every violation found
    """
    result = validate_candlesticks(candles)
    if not result.is_valid:
        raise CandleValidationError(result.errors)
    return [c if isinstance(c, Candlestick) else Candlestick.from_dict(c) for c in candles]
