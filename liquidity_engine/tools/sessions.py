"""
Session Tools.

Maps UTC time onto the trading session that governs the signal gate,
and the minimum score each session demands.
"""
from datetime import datetime, time
from typing import Optional

from liquidity_engine.core.liquidity_config import SessionThresholds
from liquidity_engine.domain.liquidity import TradingSession, to_utc_datetime


# Session windows in UTC, checked in order
SESSION_WINDOWS = (
    (TradingSession.OVERLAP, time(13, 0), time(16, 0)),    # London / New York overlap
    (TradingSession.LONDON, time(7, 0), time(16, 0)),
    (TradingSession.NEW_YORK, time(13, 0), time(22, 0)),
)

# Asian candles used for the asian_high / asian_low pools
ASIAN_RANGE_START = time(0, 0)
ASIAN_RANGE_END = time(8, 0)


def get_trading_session(dt: datetime) -> TradingSession:
    """
    Determine the trading session from UTC time.

    Sessions (in UTC):
    - Overlap: 13:00 - 16:00
    - London: 07:00 - 13:00
    - New York: 16:00 - 22:00
    - Asian: everything else
    """
    t = to_utc_datetime(dt).time()
    for session, start, end in SESSION_WINDOWS:
        if start <= t < end:
            return session
    return TradingSession.ASIAN


def session_threshold(session: TradingSession, thresholds: Optional[SessionThresholds] = None) -> float:
    """Minimum score required to emit a signal during `session`."""
    thresholds = thresholds or SessionThresholds()
    return {
        TradingSession.ASIAN: thresholds.asian,
        TradingSession.LONDON: thresholds.london,
        TradingSession.NEW_YORK: thresholds.new_york,
        TradingSession.OVERLAP: thresholds.overlap,
    }[session]


def is_asian_range(dt: datetime) -> bool:
    t = to_utc_datetime(dt).time()
    return ASIAN_RANGE_START <= t < ASIAN_RANGE_END
