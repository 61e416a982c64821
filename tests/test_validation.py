"""Tests for the opt-in candle validation utility."""
import pytest

from liquidity_engine.core.exceptions import CandleValidationError
from liquidity_engine.core.validation import parse_candles, validate_candlestick, validate_candlesticks
from liquidity_engine.domain.liquidity import Candlestick

from tests.conftest import candle


def bar(**overrides):
    data = {"timestamp": "2024-03-05T09:00:00Z", "open": 10.0, "high": 11.0, "low": 9.0, "close": 10.5, "volume": 5.0}
    data.update(overrides)
    return data


class TestSingleCandle:
    def test_valid_dict(self):
        assert validate_candlestick(bar()).is_valid

    def test_valid_candlestick(self):
        assert validate_candlestick(candle(0, 10, 11, 9, 10.5)).is_valid

    def test_missing_and_non_numeric_fields(self):
        data = bar(open="abc")
        del data["close"]

        result = validate_candlestick(data)

        assert not result.is_valid
        assert "close is required" in result.errors
        assert "open must be a valid number" in result.errors

    def test_nan_is_not_a_number(self):
        result = validate_candlestick(bar(high=float("nan")))
        assert "high must be a valid number" in result.errors

    def test_negative_values(self):
        result = validate_candlestick(bar(volume=-1))
        assert result.errors == ["volume cannot be negative"]

    def test_ohlc_ordering(self):
        result = validate_candlestick(bar(high=9.5, low=10.0, open=10.0, close=10.0))

        assert "high cannot be less than low" in result.errors
        assert "close must be within high-low range (close > high)" in result.errors

    def test_open_below_low(self):
        result = validate_candlestick(bar(open=8.0))
        assert result.errors == ["open must be within high-low range (open < low)"]

    def test_bad_timestamp(self):
        result = validate_candlestick(bar(timestamp="yesterday"))
        assert not result.is_valid


class TestBatch:
    def test_not_a_list(self):
        assert validate_candlesticks("candles").errors == ["candles must be a list"]

    def test_empty(self):
        assert validate_candlesticks([]).errors == ["candles list cannot be empty"]

    def test_errors_are_prefixed_with_index(self):
        result = validate_candlesticks([bar(), bar(timestamp="2024-03-05T09:01:00Z", volume=-2)])
        assert result.errors == ["Candle 1: volume cannot be negative"]

    def test_out_of_order_reported_once(self):
        result = validate_candlesticks([
            bar(timestamp="2024-03-05T09:02:00Z"),
            bar(timestamp="2024-03-05T09:01:00Z"),
            bar(timestamp="2024-03-05T09:00:00Z"),
        ])

        ordering = [e for e in result.errors if "chronological" in e]
        assert len(ordering) == 1
        assert "candle 1" in ordering[0]

    def test_epoch_milliseconds_accepted(self):
        result = validate_candlesticks([bar(timestamp=1709629200000), bar(timestamp=1709629260000)])
        assert result.is_valid


class TestParse:
    def test_returns_candlesticks(self):
        candles = parse_candles([bar(), bar(timestamp="2024-03-05T09:01:00Z")])

        assert all(isinstance(c, Candlestick) for c in candles)
        assert candles[0].timestamp.tzinfo is not None
        assert candles[1].close == 10.5

    def test_raises_with_every_error(self):
        with pytest.raises(CandleValidationError) as exc_info:
            parse_candles([bar(high=1.0), bar(low=-1.0)])

        assert len(exc_info.value.errors) >= 3
