"""Tests for sweep (stop hunt) detection."""
import pytest

from liquidity_engine.domain.liquidity import Direction, LiquidityPool, PoolStatus, PoolType
from liquidity_engine.services.store import LiquidityStore
from liquidity_engine.tools.sweeps import SweepDetector

from tests.conftest import at, candle


def pool(pool_type, price, minute=0):
    return LiquidityPool(type=pool_type, price=price, timestamp=at(minute), candle_indices=[minute], strength=2)


@pytest.fixture
def detector():
    return SweepDetector(min_wick_size=0.5)


class TestSweepDetector:
    def test_buy_side_sweep(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        bar = candle(10, 99.0, 101.0, 98.8, 99.5)

        sweep = detector.detect_sweep(bar, [highs], candle_index=10)

        assert sweep is not None
        assert sweep.direction is Direction.UP
        assert sweep.pool_id == highs.id
        assert sweep.pool_type is PoolType.EQUAL_HIGHS
        assert sweep.sweep_price == 101.0
        assert sweep.wick_size == pytest.approx(1.5 / 2.2)
        assert sweep.rejection_strength == pytest.approx(0.5 / 2.2)
        assert sweep.candle_index == 10

    def test_sweep_marks_pool_swept_in_store(self, detector):
        store = LiquidityStore()
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        store.add_pool(highs)

        sweep = detector.detect_sweep(candle(10, 99.0, 101.0, 98.8, 99.5), store.get_active_pools())
        store.add_sweep(sweep)

        assert store.get_pool(highs.id).status is PoolStatus.SWEPT
        assert store.get_active_pools() == []
        assert len(store.get_state().sweeps) == 1

    def test_sell_side_sweep(self, detector):
        lows = pool(PoolType.PDL, 100.0)
        bar = candle(10, 101.0, 101.2, 99.0, 100.5)

        sweep = detector.detect_sweep(bar, [lows])

        assert sweep.direction is Direction.DOWN
        assert sweep.sweep_price == 99.0
        assert sweep.wick_size == pytest.approx(1.5 / 2.2)

    def test_close_beyond_level_is_not_a_sweep(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        assert detector.detect_sweep(candle(10, 99.0, 101.0, 98.8, 100.5), [highs]) is None

    def test_short_wick_is_not_a_sweep(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        # wick 0.2 of a 2.0 range
        assert detector.detect_sweep(candle(10, 98.2, 100.1, 98.1, 99.9), [highs]) is None

    def test_swept_pools_are_ignored(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        highs.status = PoolStatus.SWEPT
        assert detector.detect_sweep(candle(10, 99.0, 101.0, 98.8, 99.5), [highs]) is None

    def test_first_qualifying_pool_wins(self, detector):
        first = pool(PoolType.EQUAL_HIGHS, 100.0)
        second = pool(PoolType.PDH, 100.5, minute=1)

        sweep = detector.detect_sweep(candle(10, 99.0, 101.0, 98.8, 99.5), [first, second])

        assert sweep.pool_id == first.id

    def test_degenerate_candles(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        assert detector.detect_sweep(candle(10, 100, 100, 100, 100), [highs]) is None
        assert detector.detect_sweep(candle(10, 99.0, float("inf"), 98.8, 99.5), [highs]) is None

    def test_values_bounded(self, detector):
        lows = pool(PoolType.EQUAL_LOWS, 100.0)
        sweep = detector.detect_sweep(candle(10, 100.5, 100.5, 90.0, 100.5), [lows])

        assert 0 <= sweep.wick_size <= 1
        assert 0 <= sweep.rejection_strength <= 1

    def test_id_depends_on_pool_and_candle(self, detector):
        highs = pool(PoolType.EQUAL_HIGHS, 100.0)
        bar = candle(10, 99.0, 101.0, 98.8, 99.5)

        a = detector.detect_sweep(bar, [highs])
        b = detector.detect_sweep(bar, [highs])

        assert a.id == b.id
