from datetime import timedelta

from flipbot.core.risk import check_cooldown, check_kill_switch, daily_loss_pct


def test_no_breach(make_state, make_config):
    assert check_kill_switch(make_state(), make_config()) == (False, None)


def test_daily_loss_boundary_is_inclusive(make_state, make_config):
    cfg = make_config(max_daily_loss_pct=1.0)

    triggered, reason = check_kill_switch(make_state(current_equity=9900.0), cfg)
    assert triggered
    assert "Daily loss" in reason
    assert "1.00%" in reason

    assert check_kill_switch(make_state(current_equity=9901.0), cfg) == (False, None)


def test_daily_loss_uses_daily_baseline_not_initial(make_state, make_config):
    state = make_state(current_equity=9000.0, daily_start_equity=9050.0)
    assert daily_loss_pct(state) < 1.0
    assert check_kill_switch(state, make_config(max_daily_loss_pct=1.0)) == (False, None)


def test_gain_never_trips_daily_loss(make_state, make_config):
    assert check_kill_switch(make_state(current_equity=12000.0), make_config()) == (False, None)


def test_consecutive_losses_boundary(make_state, make_config):
    cfg = make_config(max_consec_losses=3)
    assert check_kill_switch(make_state(consec_losses=2), cfg) == (False, None)
    assert check_kill_switch(make_state(consec_losses=3), cfg) == (True, "Consecutive losses 3 >= 3")


def test_consecutive_errors_boundary(make_state, make_config):
    cfg = make_config(max_consec_errors=5)
    assert check_kill_switch(make_state(consec_errors=4), cfg) == (False, None)
    assert check_kill_switch(make_state(consec_errors=5), cfg) == (True, "Consecutive errors 5 >= 5")


def test_hourly_trade_cap_boundary(make_state, make_config):
    cfg = make_config(max_trades_per_hour=4)
    assert check_kill_switch(make_state(trades_this_hour=3), cfg) == (False, None)
    assert check_kill_switch(make_state(trades_this_hour=4), cfg) == (True, "Trades this hour 4 >= 4")


def test_priority_order(make_state, make_config):
    cfg = make_config(max_consec_losses=1, max_consec_errors=1, max_trades_per_hour=1)
    everything = dict(consec_losses=1, consec_errors=1, trades_this_hour=1)

    _, reason = check_kill_switch(make_state(current_equity=9000.0, **everything), cfg)
    assert reason.startswith("Daily loss")

    _, reason = check_kill_switch(make_state(**everything), cfg)
    assert reason.startswith("Consecutive losses")

    _, reason = check_kill_switch(make_state(consec_errors=1, trades_this_hour=1), cfg)
    assert reason.startswith("Consecutive errors")

    _, reason = check_kill_switch(make_state(trades_this_hour=1), cfg)
    assert reason.startswith("Trades this hour")


def test_guard_is_stateless(make_state, make_config):
    state = make_state(consec_losses=10)
    cfg = make_config()
    assert check_kill_switch(state, cfg) == check_kill_switch(state, cfg)


def test_cooldown_without_previous_trade(make_state, make_config, t0):
    assert check_cooldown(make_state(), make_config(), t0)


def test_cooldown_paper_window(make_state, make_config, t0):
    cfg = make_config(mode="paper", cooldown_ms_paper=200, cooldown_ms_live=2000)
    state = make_state(last_trade_time=t0)

    assert not check_cooldown(state, cfg, t0)
    assert not check_cooldown(state, cfg, t0 + timedelta(milliseconds=199))
    assert check_cooldown(state, cfg, t0 + timedelta(milliseconds=200))


def test_cooldown_live_uses_live_value(make_state, make_config, t0):
    cfg = make_config(mode="live", cooldown_ms_paper=200, cooldown_ms_live=2000)
    state = make_state(last_trade_time=t0)

    assert not check_cooldown(state, cfg, t0 + timedelta(milliseconds=1999))
    assert check_cooldown(state, cfg, t0 + timedelta(seconds=2))


def test_cooldown_quote_mode_uses_paper_value(make_config):
    assert make_config(mode="quote", cooldown_ms_paper=123).cooldown_ms == 123
