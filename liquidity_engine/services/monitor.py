"""
Signal Monitor

Periodically re-analyzes a set of instruments and hands every newly
emitted signal to the subscribers.

The monitor is constructed and owned by the caller: nothing starts
until start() and everything stops on stop(). Each instrument runs in
its own asyncio task, so analysis for one instrument is never
interleaved with itself.
"""
import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Sequence, Union

from liquidity_engine.core.config import Settings, get_settings
from liquidity_engine.domain.liquidity import Candlestick, TradingSignal

if TYPE_CHECKING:
    from liquidity_engine.engine.registry import EngineRegistry

logger = logging.getLogger(__name__)

SEEN_SIGNALS_PER_SYMBOL = 256   # ids remembered per symbol to suppress re-dispatch

CandleProvider = Callable[[str], Awaitable[Sequence[Union[Candlestick, dict]]]]
SignalCallback = Callable[[str, TradingSignal], Union[None, Awaitable[None]]]


class SignalMonitor:
    """Fixed-interval analysis loop, one task per symbol."""

    def __init__(
        self,
        registry: "EngineRegistry",
        candle_provider: CandleProvider,
        interval: float = 60.0,
        timeout: float = 30.0
    ):
        """
        Args:
            registry: Supplies the engine for each symbol
            candle_provider: Async callable returning the candle window for a symbol
            interval: Seconds between analysis cycles
            timeout: Deadline in seconds for one candle fetch
        """
        self.registry = registry
        self.candle_provider = candle_provider
        self.interval = interval
        self.timeout = timeout

        self._callbacks: List[SignalCallback] = []
        self._tasks: Dict[str, asyncio.Task] = {}
        self._seen: Dict[str, Deque[str]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def symbols(self) -> List[str]:
        return sorted(self._tasks)

    def subscribe(self, callback: SignalCallback) -> Callable[[], None]:
        """Register a callback for new signals; returns an unsubscribe callable."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, symbols: Iterable[str]) -> None:
        """Start one loop per symbol. Symbols already monitored are skipped."""
        self._running = True
        for symbol in symbols:
            key = symbol.upper()
            if key in self._tasks:
                continue
            self._tasks[key] = asyncio.create_task(self._run(key), name=f"monitor-{key}")
        logger.info(f"Signal monitor started for {', '.join(self.symbols)} (every {self.interval}s)")

    async def stop(self) -> None:
        """Cancel every loop and wait for it to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Signal monitor stopped")

    async def _run(self, symbol: str) -> None:
        while self._running:
            try:
                await self.run_once(symbol)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Monitor cycle failed for {symbol}: {e}")
            await asyncio.sleep(self.interval)

    # =========================================================================
    # One cycle
    # =========================================================================

    async def run_once(self, symbol: str) -> Optional[TradingSignal]:
        """
        Fetch candles, analyze, and dispatch the signal if it is new.

        A fetch that times out is logged and skipped; the next cycle
        tries again.
        """
        try:
            candles = await asyncio.wait_for(self.candle_provider(symbol), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Candle fetch for {symbol} timed out after {self.timeout}s")
            return None

        result = self.registry.get(symbol).analyze(symbol, candles)
        signal = result.signal
        seen = self._seen.setdefault(symbol.upper(), deque(maxlen=SEEN_SIGNALS_PER_SYMBOL))
        if signal is None or signal.id in seen:
            return None

        seen.append(signal.id)
        await self._dispatch(symbol, signal)
        return signal

    async def _dispatch(self, symbol: str, signal: TradingSignal) -> None:
        for callback in list(self._callbacks):
            try:
                outcome = callback(symbol, signal)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Signal callback {callback!r} failed for {symbol}: {e}")


def create_signal_monitor(
    candle_provider: CandleProvider,
    registry: Optional["EngineRegistry"] = None,
    settings: Optional[Settings] = None
) -> SignalMonitor:
    """Build a monitor on the process registry with the interval and timeout from settings."""
    from liquidity_engine.engine.registry import get_engine_registry

    settings = settings or get_settings()
    return SignalMonitor(
        registry or get_engine_registry(),
        candle_provider,
        interval=settings.monitor_interval_seconds,
        timeout=settings.monitor_timeout_seconds,
    )
