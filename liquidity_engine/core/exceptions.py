"""Custom exception classes for the engine and the API."""
from typing import List


class LiquidityEngineError(Exception):
    """Base error for the liquidity engine."""


class InvalidConfigurationError(LiquidityEngineError, ValueError):
    """Configuration rejected at load time. Carries every violated constraint."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class CandleValidationError(LiquidityEngineError, ValueError):
    """Bulk candle input rejected by the validation utility."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid candles: " + "; ".join(self.errors[:5]))
