"""Tests for sessions and indicator helpers."""
from datetime import datetime, timezone

import pytest

from liquidity_engine.core.liquidity_config import SessionThresholds
from liquidity_engine.domain.liquidity import Direction, TradingSession
from liquidity_engine.tools.indicators import (
    calculate_atr,
    detect_rsi_divergence,
    divergence_magnitude,
    rsi,
)
from liquidity_engine.tools.sessions import get_trading_session, is_asian_range, session_threshold

from tests.conftest import candle


def utc(hour, minute=0):
    return datetime(2024, 3, 5, hour, minute, tzinfo=timezone.utc)


class TestSessions:
    @pytest.mark.parametrize("hour, minute, expected", [
        (3, 0, TradingSession.ASIAN),
        (7, 0, TradingSession.LONDON),
        (12, 59, TradingSession.LONDON),
        (13, 0, TradingSession.OVERLAP),
        (15, 59, TradingSession.OVERLAP),
        (16, 0, TradingSession.NEW_YORK),
        (22, 0, TradingSession.ASIAN),
    ])
    def test_windows(self, hour, minute, expected):
        assert get_trading_session(utc(hour, minute)) is expected

    def test_epoch_ms(self):
        assert get_trading_session(int(utc(14).timestamp() * 1000)) is TradingSession.OVERLAP

    def test_thresholds(self):
        assert session_threshold(TradingSession.ASIAN) == 65
        assert session_threshold(TradingSession.OVERLAP) == 45
        assert session_threshold(TradingSession.LONDON, SessionThresholds(london=70)) == 70

    def test_asian_range(self):
        assert is_asian_range(utc(2))
        assert not is_asian_range(utc(8))


class TestRsi:
    def test_length_and_start(self):
        closes = [float(i) for i in range(30)]
        values = rsi(closes, 14)
        assert len(values) == 16
        assert all(v == 100.0 for v in values)

    def test_flat_is_neutral(self):
        assert rsi([1.0] * 20, 14) == [50.0] * 6

    def test_short_series(self):
        assert rsi([1.0, 2.0], 14) == []

    def test_falling_prices_stay_low(self):
        closes = [100 - i + (0.5 if i % 2 else 0) for i in range(40)]
        assert max(rsi(closes, 14)) < 50


class TestAtr:
    def test_constant_range(self):
        candles = [candle(i, 100, 101, 99, 100) for i in range(20)]
        assert calculate_atr(candles, 14) == pytest.approx(2.0)

    def test_gap_counts(self):
        candles = [candle(i, 100, 101, 99, 100) for i in range(15)]
        candles.append(candle(15, 105, 106, 104, 105))
        assert calculate_atr(candles, 14) == pytest.approx((13 * 2.0 + 6.0) / 14)

    def test_short_history_falls_back_to_range(self):
        candles = [candle(i, 100, 100 + i, 100 - i, 100) for i in range(1, 4)]
        assert calculate_atr(candles, 14) == pytest.approx(4.0)


class TestDivergence:
    def test_bullish(self):
        assert detect_rsi_divergence([102, 101, 100], [30, 35, 40]) is Direction.UP

    def test_bearish(self):
        assert detect_rsi_divergence([100, 101, 102], [70, 65, 60]) is Direction.DOWN

    def test_none(self):
        assert detect_rsi_divergence([100, 101, 102], [60, 65, 70]) is None
        assert detect_rsi_divergence([100, 101], [60, 65]) is None

    def test_magnitude(self):
        assert divergence_magnitude([30, 35, 40]) == pytest.approx(0.1)
        assert divergence_magnitude([1]) == 0.0
