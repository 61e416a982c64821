"""Engine module: orchestrator, decision gate and per-instrument registry."""
from liquidity_engine.engine.decision_gate import DecisionGate, GateResult
from liquidity_engine.engine.engine import LiquidityEngine, AnalysisResult, ExternalSignalValidation
from liquidity_engine.engine.registry import EngineRegistry, get_engine_registry
