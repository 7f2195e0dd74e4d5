import threading

import pytest

from flipbot import main as bot_main
from flipbot.core.errors import PriceUnavailable
from flipbot.exchange.venues import QuoteVenue
from flipbot.feeds.prices import SimulatedPriceSource
from flipbot.strategies.flip_on_loss import FlipOnLossEngine


class DeadFeed:
    kind = "dead"

    def __init__(self):
        self.calls = 0

    def get_price(self):
        self.calls += 1
        raise PriceUnavailable("feed down")


def _engine(cfg, prices):
    return FlipOnLossEngine(cfg, QuoteVenue(cfg, prices), verbose_ticks=False)


def test_run_loop_ticks_until_max(make_config):
    cfg = make_config(tf_seconds=0.01)
    prices = SimulatedPriceSource(start_price=100.0, volatility=0.0)
    engine = _engine(cfg, prices)

    ticks = bot_main.run_loop(engine, prices, threading.Event(), max_ticks=3, write_snapshots=False)

    assert ticks == 3
    assert len(engine.candles) == 3
    assert engine.state.consec_errors == 0


def test_run_loop_counts_feed_errors_and_keeps_going(make_config):
    cfg = make_config(tf_seconds=0.01, max_consec_errors=2)
    feed = DeadFeed()
    engine = _engine(cfg, feed)

    ticks = bot_main.run_loop(engine, feed, threading.Event(), max_ticks=4, write_snapshots=False)

    assert ticks == 4
    assert feed.calls == 4
    assert engine.state.consec_errors == 4
    assert not engine.state.trading_enabled
    assert engine.state.kill_switch_reason == "Consecutive errors 2 >= 2"


def test_run_loop_honours_stop_event(make_config):
    cfg = make_config(tf_seconds=0.01)
    prices = SimulatedPriceSource(start_price=100.0)
    stop = threading.Event()
    stop.set()

    assert bot_main.run_loop(_engine(cfg, prices), prices, stop, write_snapshots=False) == 0


def test_run_loop_writes_snapshots(make_config, tmp_path, monkeypatch):
    target = tmp_path / "state" / "bot_state.json"
    monkeypatch.setattr(bot_main, "STATE_PATH", target)
    cfg = make_config(tf_seconds=0.01)
    prices = SimulatedPriceSource(start_price=100.0, volatility=0.0)

    bot_main.run_loop(_engine(cfg, prices), prices, threading.Event(), max_ticks=1)

    assert target.exists()


def test_main_exits_on_bad_config(monkeypatch, tmp_path):
    monkeypatch.setattr(bot_main, "LOG_PATH", tmp_path / "bot_log.jsonl")
    monkeypatch.setenv("FLIPBOT_MODE", "yolo")
    with pytest.raises(SystemExit) as exc:
        bot_main.main()
    assert exc.value.code == 1
