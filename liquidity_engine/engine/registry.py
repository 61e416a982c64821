"""
Engine Registry - One engine, and so one store, per instrument.

Engines are created lazily with the shared configuration. The registry
itself does not serialize calls; the API and the monitor each touch an
instrument from a single task at a time.
"""
import logging
from typing import Dict, List, Optional

from liquidity_engine.core.config import get_settings
from liquidity_engine.core.liquidity_config import LiquidityConfig, load_config, load_config_file
from liquidity_engine.engine.engine import LiquidityEngine

logger = logging.getLogger(__name__)


class EngineRegistry:
    """Lazily builds a LiquidityEngine per symbol."""

    def __init__(self, config: Optional[LiquidityConfig] = None, clock=None):
        self.config = load_config(config)
        self._clock = clock
        self._engines: Dict[str, LiquidityEngine] = {}

    def get(self, symbol: str) -> LiquidityEngine:
        key = symbol.upper()
        engine = self._engines.get(key)
        if engine is None:
            engine = LiquidityEngine(self.config, clock=self._clock)
            self._engines[key] = engine
            logger.info(f"Created liquidity engine for {key}")
        return engine

    def __contains__(self, symbol: str) -> bool:
        return symbol.upper() in self._engines

    def symbols(self) -> List[str]:
        return sorted(self._engines)

    def reset(self) -> None:
        """Forget every engine and its recorded events."""
        self._engines.clear()


# Singleton instance
_engine_registry: Optional[EngineRegistry] = None


def get_engine_registry() -> EngineRegistry:
    """Get the process registry, configured from LIQUIDITY_CONFIG_PATH when set."""
    global _engine_registry
    if _engine_registry is None:
        settings = get_settings()
        config = None
        if settings.liquidity_config_path:
            config = load_config_file(settings.liquidity_config_path)
            logger.info(f"Loaded liquidity config from {settings.liquidity_config_path}")
        _engine_registry = EngineRegistry(config)
    return _engine_registry
