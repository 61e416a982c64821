"""Domain models - API Response schemas."""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    engines: List[str]
    timestamp: str


class SignalResponse(BaseModel):
    """Latest signal for an instrument, if any."""
    symbol: str
    signal: Optional[Dict[str, Any]] = None
    recent: List[Dict[str, Any]] = []


class ExternalSignalResponse(BaseModel):
    """Verdict on a third-party signal."""
    symbol: str
    is_valid: bool
    reasons: List[str]


class ConfigValidationResponse(BaseModel):
    """Result of validating a partial liquidity configuration."""
    is_valid: bool
    errors: List[str]
