# flipbot/core/session.py
"""
Session state construction and rolling counter windows.

The windows reset on elapsed time measured with the timestamp the caller
passes in (wall clock when running live, candle time when replaying),
never on tick count.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from flipbot.core.models import LONG, SessionState

HOUR = timedelta(hours=1)
DAY  = timedelta(hours=24)


def new_session_state(initial_equity: float, now: datetime) -> SessionState:
    """Fresh session: flat, LONG bias, trading enabled, both windows start at `now`."""
    return SessionState(
        position=None,
        trades=(),
        current_direction=LONG,
        initial_equity=initial_equity,
        current_equity=initial_equity,
        daily_start_equity=initial_equity,
        daily_start_time=now,
        consec_losses=0,
        consec_errors=0,
        trades_this_hour=0,
        hour_start_time=now,
        last_trade_time=None,
        trading_enabled=True,
        kill_switch_reason=None,
    )


def reset_hourly_counters(state: SessionState, now: datetime) -> SessionState:
    """Zero trades_this_hour once a full hour has passed since hour_start_time."""
    if now - state.hour_start_time < HOUR:
        return state
    return replace(state, trades_this_hour=0, hour_start_time=now)


def reset_daily_counters(state: SessionState, now: datetime) -> SessionState:
    """Re-baseline the daily loss guard to current (not initial) equity after 24h."""
    if now - state.daily_start_time < DAY:
        return state
    return replace(state, daily_start_equity=state.current_equity, daily_start_time=now)
