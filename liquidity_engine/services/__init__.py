"""Services module: event store, signal scoring and the signal monitor."""
from liquidity_engine.services.store import LiquidityStore, StoreState
from liquidity_engine.services.scorer import SignalScorer
from liquidity_engine.services.monitor import SignalMonitor, create_signal_monitor
