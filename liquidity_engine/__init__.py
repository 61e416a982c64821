"""
Liquidity Engine.

Detects liquidity pools, stop hunts, structure shifts and triangle
consolidations in a candle history and turns them into scored signals.
"""
from liquidity_engine.core.liquidity_config import LiquidityConfig, load_config, validate_config
from liquidity_engine.engine.engine import LiquidityEngine, AnalysisResult
from liquidity_engine.services.store import LiquidityStore

__version__ = "1.0.0"

__all__ = [
    "LiquidityConfig",
    "load_config",
    "validate_config",
    "LiquidityEngine",
    "AnalysisResult",
    "LiquidityStore",
]
