"""End-to-end tests for the liquidity engine."""
import logging
from dataclasses import replace
from datetime import timezone

import pytest

from liquidity_engine.core.exceptions import InvalidConfigurationError
from liquidity_engine.domain.liquidity import Direction, PoolStatus, SignalDirection, TradingSession
from liquidity_engine.engine.engine import LiquidityEngine

from tests.conftest import fixed_clock

FLAT_RSI = [50.0] * 60


def asian_engine():
    return LiquidityEngine(clock=fixed_clock(3))


def overlap_engine():
    return LiquidityEngine(clock=fixed_clock(14))


class TestInsufficientData:
    def test_short_window_is_rejected_untouched(self, sweep_setup):
        engine = overlap_engine()

        result = engine.analyze("EURUSD", sweep_setup[:30])

        assert not result.has_valid_setup
        assert result.signal is None
        assert result.blocking_reasons == ["Insufficient data for analysis: 30 candles, at least 50 required"]
        assert result.session is TradingSession.OVERLAP
        assert engine.get_store().get_statistics()["total_pools"] == 0
        assert engine.get_store().get_state().candles == []

    def test_min_candles_override(self, sweep_setup):
        engine = LiquidityEngine({"min_candles": 100}, clock=fixed_clock(14))
        result = engine.analyze("EURUSD", sweep_setup)
        assert "at least 100 required" in result.blocking_reasons[0]


class TestAsianSession:
    def test_score_below_threshold_blocks(self, sweep_setup):
        result = asian_engine().analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        assert not result.has_valid_setup
        assert result.signal is None
        assert result.session is TradingSession.ASIAN
        assert len(result.blocking_reasons) == 1
        reason = result.blocking_reasons[0]
        assert "ASIAN" in reason
        assert "65" in reason
        assert result.score.total < 65

    def test_events_are_recorded_anyway(self, sweep_setup):
        engine = asian_engine()
        result = engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        assert len(result.sweeps) == 1
        sweep = result.sweeps[0]
        assert sweep.direction is Direction.DOWN
        assert sweep.candle_index == 59
        assert engine.get_store().get_pool(sweep.pool_id).status is PoolStatus.SWEPT
        assert [s.direction for s in result.structures] == [Direction.UP]
        assert len(engine.get_store().get_state().candles) == 60


class TestOverlapSession:
    def test_buy_signal(self, sweep_setup):
        engine = overlap_engine()

        result = engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        assert result.has_valid_setup
        assert result.blocking_reasons == []
        signal = result.signal
        assert signal.direction is SignalDirection.BUY
        assert signal.symbol == "EURUSD"
        assert signal.entry_price == 134.0
        assert signal.stop_loss < signal.entry_price
        risk = signal.entry_price - signal.stop_loss
        assert signal.take_profit - signal.entry_price == pytest.approx(2 * risk)
        assert signal.timestamp == sweep_setup[-1].timestamp
        assert signal.score.total >= 45
        assert signal.sweep_id == result.sweeps[-1].id
        assert signal.structure_change_id == result.structures[-1].id
        assert signal.reasoning.startswith("Liquidity sweep at")
        assert engine.get_store().get_recent_signals(1)[0].id == signal.id

    def test_signal_is_logged(self, sweep_setup, caplog):
        with caplog.at_level(logging.INFO, logger="liquidity_engine.engine.engine"):
            overlap_engine().analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)
        assert any(r.levelno == logging.INFO and "Signal" in r.getMessage() for r in caplog.records)

    def test_reanalysis_does_not_duplicate(self, sweep_setup):
        engine = overlap_engine()
        first = engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)
        pools = len(first.pools)
        structures = len(first.structures)

        second = engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        assert len(second.pools) == pools
        assert len(second.structures) == structures
        ids = [s.id for s in engine.get_store().get_state().signals]
        assert len(ids) == len(set(ids))

    def test_dict_candles(self, sweep_setup):
        from_objects = overlap_engine().analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)
        from_dicts = overlap_engine().analyze(
            "EURUSD", [c.to_dict() for c in sweep_setup], rsi_series=FLAT_RSI
        )

        assert from_dicts.signal.id == from_objects.signal.id
        assert [p.id for p in from_dicts.pools] == [p.id for p in from_objects.pools]

    def test_result_serializes(self, sweep_setup):
        data = overlap_engine().analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI).to_dict()

        assert data["session"] == "OVERLAP"
        assert data["signal"]["direction"] == "BUY"
        assert data["has_valid_setup"] is True


class TestExternalSignals:
    def test_buy_backed_by_sweep_and_structure(self, sweep_setup):
        engine = asian_engine()
        engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        verdict = engine.validate_external_signal("BUY", 134.0)

        assert verdict.is_valid
        assert verdict.reasons == []

    def test_sell_has_no_backing(self, sweep_setup):
        engine = asian_engine()
        engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)

        verdict = engine.validate_external_signal(SignalDirection.SELL, 134.0)

        assert not verdict.is_valid
        assert verdict.reasons == ["No confirming liquidity sweep", "No structure confirmation"]

    def test_invalid_price(self):
        verdict = asian_engine().validate_external_signal("BUY", -1.0)
        assert verdict.reasons[0] == "Invalid signal price: -1.0"
        assert len(verdict.reasons) == 3


class TestConfiguration:
    def test_invalid_overrides_raise(self):
        with pytest.raises(InvalidConfigurationError) as exc:
            LiquidityEngine({"min_candles": 0, "equal_tolerance": 2})
        assert len(exc.value.errors) == 2

    def test_unknown_key_raises(self):
        with pytest.raises(InvalidConfigurationError):
            LiquidityEngine({"not_a_setting": 1})

    def test_reset(self, sweep_setup):
        engine = asian_engine()
        engine.analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI)
        engine.reset()
        assert engine.get_store().get_statistics()["total_pools"] == 0


class TestCandleInput:
    def test_malformed_row_gives_labelled_result(self, sweep_setup):
        engine = overlap_engine()
        rows = [c.to_dict() for c in sweep_setup]
        del rows[10]["close"]

        result = engine.analyze("EURUSD", rows, rsi_series=FLAT_RSI)

        assert not result.has_valid_setup
        assert len(result.blocking_reasons) == 1
        assert result.blocking_reasons[0].startswith("Invalid candle data")
        assert "close" in result.blocking_reasons[0]
        assert engine.get_store().get_state().candles == []
        assert engine.get_store().get_statistics()["total_pools"] == 0

    def test_unparseable_timestamp(self, sweep_setup):
        rows = [c.to_dict() for c in sweep_setup]
        rows[0]["timestamp"] = "not a date"

        result = overlap_engine().analyze("EURUSD", rows)

        assert result.blocking_reasons[0].startswith("Invalid candle data")

    def test_naive_timestamps_are_read_as_utc(self, sweep_setup):
        naive = [replace(c, timestamp=c.timestamp.replace(tzinfo=None)) for c in sweep_setup]
        engine = overlap_engine()

        result = engine.analyze("EURUSD", naive, rsi_series=FLAT_RSI)
        engine.get_store().cleanup_old_data(1, now=sweep_setup[-1].timestamp)

        assert all(c.timestamp.tzinfo is timezone.utc for c in naive)
        assert result.signal.id == overlap_engine().analyze("EURUSD", sweep_setup, rsi_series=FLAT_RSI).signal.id
        assert len(engine.get_store().get_state().candles) == 60
