from datetime import timedelta

from flipbot.core.models import LONG
from flipbot.core.session import new_session_state, reset_daily_counters, reset_hourly_counters


def test_new_session_state(t0):
    st = new_session_state(5000.0, t0)
    assert st.position is None
    assert st.trades == ()
    assert st.current_direction == LONG
    assert st.initial_equity == st.current_equity == st.daily_start_equity == 5000.0
    assert st.daily_start_time == st.hour_start_time == t0
    assert st.last_trade_time is None
    assert st.trading_enabled and st.kill_switch_reason is None


def test_hourly_reset_not_before_one_hour(make_state, t0):
    st = make_state(trades_this_hour=7)
    almost = t0 + timedelta(hours=1) - timedelta(milliseconds=1)

    assert reset_hourly_counters(st, almost) is st


def test_hourly_reset_at_one_hour(make_state, t0):
    st = make_state(trades_this_hour=7)
    later = t0 + timedelta(hours=1)

    nxt = reset_hourly_counters(st, later)
    assert nxt.trades_this_hour == 0
    assert nxt.hour_start_time == later
    assert st.trades_this_hour == 7


def test_hourly_reset_handles_long_gap(make_state, t0):
    nxt = reset_hourly_counters(make_state(trades_this_hour=3), t0 + timedelta(hours=5))
    assert nxt.trades_this_hour == 0


def test_daily_reset_not_before_24h(make_state, t0):
    st = make_state(current_equity=9500.0)
    assert reset_daily_counters(st, t0 + timedelta(hours=23, minutes=59)) is st


def test_daily_reset_rebaselines_to_current_equity(make_state, t0):
    st = make_state(current_equity=9500.0)
    later = t0 + timedelta(days=1)

    nxt = reset_daily_counters(st, later)
    assert nxt.daily_start_equity == 9500.0
    assert nxt.daily_start_time == later
    assert nxt.initial_equity == 10000.0


def test_resets_are_idempotent(make_state, t0):
    later = t0 + timedelta(days=1)
    once = reset_daily_counters(reset_hourly_counters(make_state(trades_this_hour=2), later), later)
    twice = reset_daily_counters(reset_hourly_counters(once, later), later)
    assert twice == once
