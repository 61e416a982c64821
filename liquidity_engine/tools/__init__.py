"""
Liquidity Engine - Detection Tools.

Pure detectors over a candle window. They observe and report facts
about the history; the engine decides what to do with them.
"""
from liquidity_engine.tools.pools import LiquidityPoolDetector
from liquidity_engine.tools.sweeps import SweepDetector
from liquidity_engine.tools.breakout import BreakoutValidator, BreakoutValidation
from liquidity_engine.tools.structure import StructureAnalyzer, find_swing_points
from liquidity_engine.tools.triangle import TriangleDetector
from liquidity_engine.tools.sessions import (
    get_trading_session,
    session_threshold,
    is_asian_range
)
from liquidity_engine.tools.indicators import (
    calculate_atr,
    rsi,
    detect_rsi_divergence
)
