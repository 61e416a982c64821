"""Tests for the periodic signal monitor."""
import asyncio

import pytest

from liquidity_engine.core.config import Settings
from liquidity_engine.domain.liquidity import SignalDirection, SignalScore, TradingSignal
from liquidity_engine.engine.engine import AnalysisResult
from liquidity_engine.engine.registry import EngineRegistry
from liquidity_engine.services import SignalMonitor, create_signal_monitor
from liquidity_engine.services import monitor as monitor_module

from tests.conftest import at, fixed_clock


def make_signal(minute=0):
    return TradingSignal(
        symbol="EURUSD",
        direction=SignalDirection.BUY,
        score=SignalScore(total=60.0),
        timestamp=at(minute),
        entry_price=100.0,
        stop_loss=99.0,
        take_profit=102.0,
    )


class StubEngine:
    def __init__(self, signal):
        self.signal = signal
        self.calls = 0

    def analyze(self, symbol, candles):
        self.calls += 1
        return AnalysisResult(signal=self.signal, has_valid_setup=self.signal is not None)


class StubRegistry:
    def __init__(self, engine):
        self.engine = engine

    def get(self, symbol):
        return self.engine


async def no_candles(symbol):
    return []


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_new_signal_dispatched_once(self):
        signal = make_signal()
        monitor = SignalMonitor(StubRegistry(StubEngine(signal)), no_candles)
        received = []
        monitor.subscribe(lambda symbol, s: received.append((symbol, s.id)))

        first = await monitor.run_once("EURUSD")
        second = await monitor.run_once("EURUSD")

        assert first is signal
        assert second is None
        assert received == [("EURUSD", signal.id)]

    @pytest.mark.asyncio
    async def test_async_callback_and_unsubscribe(self):
        monitor = SignalMonitor(StubRegistry(StubEngine(make_signal())), no_candles)
        received = []

        async def collect(symbol, signal):
            received.append(signal.id)

        unsubscribe = monitor.subscribe(collect)
        await monitor.run_once("EURUSD")
        unsubscribe()
        monitor.registry.engine.signal = make_signal(5)
        await monitor.run_once("EURUSD")

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self):
        monitor = SignalMonitor(StubRegistry(StubEngine(make_signal())), no_candles)
        received = []

        def broken(symbol, signal):
            raise RuntimeError("boom")

        monitor.subscribe(broken)
        monitor.subscribe(lambda symbol, s: received.append(s.id))

        assert await monitor.run_once("EURUSD") is not None
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_fetch_timeout_skips_cycle(self):
        engine = StubEngine(make_signal())

        async def slow(symbol):
            await asyncio.sleep(1)
            return []

        monitor = SignalMonitor(StubRegistry(engine), slow, timeout=0.01)

        assert await monitor.run_once("EURUSD") is None
        assert engine.calls == 0

    @pytest.mark.asyncio
    async def test_real_engine_without_enough_data(self, sweep_setup):
        async def provider(symbol):
            return sweep_setup[:20]

        registry = EngineRegistry(clock=fixed_clock(14))
        monitor = SignalMonitor(registry, provider)

        assert await monitor.run_once("eurusd") is None
        assert "EURUSD" in registry


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        monitor = SignalMonitor(StubRegistry(StubEngine(make_signal())), no_candles, interval=0.01)
        delivered = asyncio.Event()
        monitor.subscribe(lambda symbol, s: delivered.set())

        await monitor.start(["eurusd", "EURUSD", "gbpusd"])

        assert monitor.is_running
        assert monitor.symbols == ["EURUSD", "GBPUSD"]
        await asyncio.wait_for(delivered.wait(), timeout=1)

        await monitor.stop()

        assert not monitor.is_running
        assert monitor.symbols == []

    @pytest.mark.asyncio
    async def test_cycle_errors_keep_the_loop_alive(self):
        attempts = []

        async def flaky(symbol):
            attempts.append(symbol)
            if len(attempts) == 1:
                raise ConnectionError("feed down")
            return []

        engine = StubEngine(None)
        monitor = SignalMonitor(StubRegistry(engine), flaky, interval=0.01)

        await monitor.start(["EURUSD"])
        for _ in range(100):
            if engine.calls:
                break
            await asyncio.sleep(0.01)
        await monitor.stop()

        assert len(attempts) >= 2
        assert engine.calls >= 1


class TestSeenSignals:
    @pytest.mark.asyncio
    async def test_memory_is_bounded_per_symbol(self, monkeypatch):
        monkeypatch.setattr(monitor_module, "SEEN_SIGNALS_PER_SYMBOL", 2)
        engine = StubEngine(None)
        monitor = SignalMonitor(StubRegistry(engine), no_candles)
        received = []
        monitor.subscribe(lambda symbol, s: received.append(s.id))
        first, second, third = make_signal(1), make_signal(2), make_signal(3)

        for signal in (first, second, third, first):
            engine.signal = signal
            await monitor.run_once("EURUSD")

        # the oldest id was forgotten, so it is delivered again
        assert received == [first.id, second.id, third.id, first.id]

    @pytest.mark.asyncio
    async def test_symbols_are_tracked_separately(self):
        signal = make_signal()
        monitor = SignalMonitor(StubRegistry(StubEngine(signal)), no_candles)
        received = []
        monitor.subscribe(lambda symbol, s: received.append(symbol))

        await monitor.run_once("EURUSD")
        await monitor.run_once("GBPUSD")
        await monitor.run_once("eurusd")

        assert received == ["EURUSD", "GBPUSD"]


class TestFactory:
    def test_settings_drive_interval_and_timeout(self):
        registry = StubRegistry(StubEngine(None))
        settings = Settings(monitor_interval_seconds=5.0, monitor_timeout_seconds=2.0)

        monitor = create_signal_monitor(no_candles, registry=registry, settings=settings)

        assert isinstance(monitor, SignalMonitor)
        assert monitor.registry is registry
        assert monitor.interval == 5.0
        assert monitor.timeout == 2.0
        assert not monitor.is_running
