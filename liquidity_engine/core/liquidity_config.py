"""
Liquidity Configuration.

Tunable thresholds for the detectors, the scorer and the engine gate.
Every constraint is checked at load time and all violations are reported
together, never just the first one.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from liquidity_engine.core.exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ScoreWeights(BaseModel):
    """Maximum points each evidence category can contribute to a score."""
    model_config = ConfigDict(extra="forbid")

    sweep: float = Field(default=25.0, ge=0, allow_inf_nan=False)
    bos: float = Field(default=30.0, ge=0, allow_inf_nan=False)
    divergence: float = Field(default=15.0, ge=0, allow_inf_nan=False)
    volume: float = Field(default=10.0, ge=0, allow_inf_nan=False)
    htf: float = Field(default=20.0, ge=0, allow_inf_nan=False)
    triangle: float = Field(default=15.0, ge=0, allow_inf_nan=False)
    session: float = Field(default=5.0, ge=0, allow_inf_nan=False)


class SessionThresholds(BaseModel):
    """Minimum score needed to emit a signal, per trading session."""
    model_config = ConfigDict(extra="forbid")

    asian: float = Field(default=65.0, ge=0, le=100)
    london: float = Field(default=50.0, ge=0, le=100)
    new_york: float = Field(default=50.0, ge=0, le=100)
    overlap: float = Field(default=45.0, ge=0, le=100)


class LiquidityConfig(BaseModel):
    """Complete engine configuration."""
    model_config = ConfigDict(extra="forbid")

    # Pool detection
    equal_tolerance: float = Field(default=0.001, ge=0, le=1, allow_inf_nan=False)
    min_range_touches: int = Field(default=3, ge=2)
    swing_lookback: int = Field(default=20, ge=1)
    htf_timeframes: List[str] = Field(default_factory=lambda: ["1d", "1w"])

    # Sweep / breakout
    min_wick_size: float = Field(default=0.5, ge=0, le=1, allow_inf_nan=False)
    volume_spike_multiplier: float = Field(default=1.5, ge=1, allow_inf_nan=False)

    # Scoring and gate
    score_weights: ScoreWeights = Field(default_factory=ScoreWeights)
    session_thresholds: SessionThresholds = Field(default_factory=SessionThresholds)

    # Signal construction
    min_candles: int = Field(default=50, ge=1)
    atr_period: int = Field(default=14, ge=1)
    atr_stop_multiplier: float = Field(default=1.5, gt=0, allow_inf_nan=False)
    reward_risk_ratio: float = Field(default=2.0, gt=0, allow_inf_nan=False)

    # Triangle detection
    triangle_lookback: int = Field(default=50, ge=20)

    @field_validator("htf_timeframes")
    @classmethod
    def htf_timeframes_not_empty(cls, v):
        if not v:
            raise ValueError("must be a non-empty list")
        return v


@dataclass
class ConfigValidation:
    """Outcome of validate_config."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


ConfigInput = Union[LiquidityConfig, Dict[str, Any], None]


def _format_errors(exc: ValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "config"
        errors.append(f"{loc}: {err['msg']}")
    return errors


def _as_mapping(partial: ConfigInput) -> Dict[str, Any]:
    if partial is None:
        return {}
    if isinstance(partial, LiquidityConfig):
        return partial.model_dump()
    return dict(partial)


def validate_config(partial: ConfigInput = None) -> ConfigValidation:
    """
    Check a (partial) configuration without raising.

    Args:
        partial: Overrides for the defaults, or a complete LiquidityConfig

    Returns:
        ConfigValidation listing every violated constraint as "field: message"
    """
    try:
        LiquidityConfig.model_validate(_as_mapping(partial))
    except ValidationError as e:
        return ConfigValidation(is_valid=False, errors=_format_errors(e))
    except (TypeError, ValueError) as e:
        return ConfigValidation(is_valid=False, errors=[f"config: {e}"])
    return ConfigValidation(is_valid=True)


def load_config(partial: ConfigInput = None) -> LiquidityConfig:
    """
    Build a LiquidityConfig from defaults merged with overrides.

    Loading an already loaded config returns an equal copy.

    Raises:
        InvalidConfigurationError: with the full list of violations
    """
    if isinstance(partial, LiquidityConfig):
        return partial.model_copy(deep=True)

    result = validate_config(partial)
    if not result.is_valid:
        logger.warning(f"Rejected liquidity config: {result.errors}")
        raise InvalidConfigurationError(result.errors)
    return LiquidityConfig.model_validate(_as_mapping(partial))


def load_config_file(path: Union[str, Path]) -> LiquidityConfig:
    """Load overrides from a YAML file and validate them."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Liquidity config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data: Optional[Dict[str, Any]] = yaml.safe_load(f)

    if data is not None and not isinstance(data, dict):
        raise InvalidConfigurationError([f"config: expected a mapping in {path}"])

    config = load_config(data or {})
    logger.info(f"Liquidity config loaded from {path}")
    return config
