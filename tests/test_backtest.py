import pandas as pd
import pytest

from config.config import PAPER_SLIPPAGE_BPS
from flipbot import backtest
from flipbot.backtest import (
    fetch_api_prices, interval_to_seconds, load_csv_prices, run_backtest, summarize,
)
from flipbot.core.errors import PriceUnavailable


def _frame(prices, step="1min"):
    ts = pd.date_range("2024-01-01", periods=len(prices), freq=step, tz="UTC")
    return pd.DataFrame({"timestamp": ts, "price": prices})


def test_backtest_single_winner(make_config):
    cfg = make_config(ema_fast=2, ema_slow=3, fee_bps=0.0)
    prices = _frame([100.0, 101.0, 102.0, 103.0])

    engine = run_backtest(cfg, prices)

    stats = engine.stats()
    assert stats["total_trades"] == 1
    assert stats["winning_trades"] == 1
    assert engine.state.current_equity > cfg.initial_equity
    assert len(engine.candles) == 4


def test_backtest_uses_candle_time_for_cooldown(make_config):
    # 1-minute candles are far apart, so a 2 s live cooldown never blocks
    cfg = make_config(mode="live", ema_fast=2, ema_slow=3, fee_bps=0.0)
    engine = run_backtest(cfg, _frame([100.0, 101.0, 102.0, 103.0, 104.0]))
    assert engine.state.position is not None
    assert engine.state.position.opened_at == pd.Timestamp("2024-01-01 00:04", tz="UTC")


def test_backtest_stops_when_errors_trip_kill_switch(make_config):
    cfg = make_config(
        mode="live", live_mode="real", price_api_url="http://x",
        ema_fast=2, ema_slow=3, max_consec_errors=2,
    )
    engine = run_backtest(cfg, _frame([100.0, 101.0, 102.0, 103.0, 104.0, 105.0]))

    assert not engine.state.trading_enabled
    assert engine.state.kill_switch_reason == "Consecutive errors 2 >= 2"
    assert len(engine.candles) == 4
    assert engine.stats()["total_trades"] == 0


def test_backtest_rejects_empty_frame(make_config):
    with pytest.raises(ValueError):
        run_backtest(make_config(), _frame([]))


def test_summarize(make_config):
    cfg = make_config(ema_fast=2, ema_slow=3, fee_bps=0.0)
    prices = _frame([100.0, 101.0, 102.0, 103.0])
    summary = summarize(run_backtest(cfg, prices), prices)

    assert summary["data_points"] == 4
    assert summary["start"].startswith("2024-01-01T00:00:00")
    assert summary["total_trades"] == 1
    assert summary["kill_switch_reason"] is None


def test_load_csv_sorts_and_cleans(tmp_path):
    path = tmp_path / "prices.csv"
    path.write_text(
        "timestamp,price\n"
        "1704067260000,101.5\n"
        "1704067200000,100.0\n"
        "1704067320000,abc\n"
        "1704067380000,-1\n"
        "1704067440000,102.0\n",
        encoding="utf-8",
    )
    df = load_csv_prices(path)

    assert list(df["price"]) == [100.0, 101.5, 102.0]
    assert df["timestamp"].iloc[0] == pd.Timestamp("2024-01-01 00:00", tz="UTC")


def test_load_csv_iso_timestamps(tmp_path):
    path = tmp_path / "prices.csv"
    path.write_text(
        "timestamp,price\n"
        "2024-01-01T00:02:00Z,3\n"
        "2024-01-01T00:00:00Z,1\n"
        "2024-01-01T00:01:00Z,2\n",
        encoding="utf-8",
    )
    assert list(load_csv_prices(path)["price"]) == [1.0, 2.0, 3.0]


def test_load_csv_missing_column(tmp_path):
    path = tmp_path / "prices.csv"
    path.write_text("time,close\n1,2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="missing columns"):
        load_csv_prices(path)


class _Resp:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


def test_fetch_api_prices(monkeypatch):
    payload = [
        {"timestamp": 1704067260000, "price": 101.0},
        {"timestamp": 1704067200000, "price": 100.0},
    ]
    monkeypatch.setattr(backtest.requests, "get", lambda url, timeout=None: _Resp(payload))

    df = fetch_api_prices("http://x/history")
    assert list(df["price"]) == [100.0, 101.0]


def test_fetch_api_prices_rejects_non_list(monkeypatch):
    monkeypatch.setattr(backtest.requests, "get", lambda url, timeout=None: _Resp({"price": 1}))
    with pytest.raises(PriceUnavailable):
        fetch_api_prices("http://x/history")


def test_fetch_binance_klines_uses_close(monkeypatch):
    calls = {}

    def fake_get(url, params=None, timeout=None):
        calls.update(params)
        return _Resp([
            [1704067200000, "99.0", "101.0", "98.0", "100.5", "10"],
            [1704067260000, "100.5", "102.0", "100.0", "101.5", "12"],
        ])

    monkeypatch.setattr(backtest.requests, "get", fake_get)
    df = backtest.fetch_binance_klines("ETHUSDT", "1m", limit=5000)

    assert list(df["price"]) == [100.5, 101.5]
    assert calls["symbol"] == "ETHUSDT"
    assert calls["limit"] == 1000


@pytest.mark.parametrize("text, seconds", [
    ("15s", 15), ("1m", 60), ("4h", 14400), ("1d", 86400), ("1w", None), ("m1", None),
])
def test_interval_to_seconds(text, seconds):
    assert interval_to_seconds(text) == seconds


def test_cli_replays_csv(tmp_path, monkeypatch, make_config):
    path = tmp_path / "prices.csv"
    path.write_text(
        "timestamp,price\n"
        + "".join(f"{1704067200000 + i * 60000},{100 + i}\n" for i in range(30)),
        encoding="utf-8",
    )
    summaries = []
    monkeypatch.setattr(backtest, "load_config", lambda: make_config(ema_fast=2, ema_slow=3))
    monkeypatch.setattr(backtest, "print_summary", summaries.append)

    backtest.main(["--csv", str(path), "--initial-equity", "5000"])

    assert len(summaries) == 1
    assert summaries[0]["data_points"] == 30
    assert summaries[0]["total_trades"] > 0
    assert summaries[0]["final_equity"] != 5000.0


def test_cli_rejects_bad_equity(tmp_path, monkeypatch, make_config):
    monkeypatch.setattr(backtest, "load_config", lambda: make_config())
    with pytest.raises(SystemExit):
        backtest.main(["--csv", str(tmp_path / "x.csv"), "--initial-equity", "-1"])


def test_load_csv_drops_bad_timestamps(tmp_path):
    path = tmp_path / "prices.csv"
    path.write_text(
        "timestamp,price\n"
        "2024-01-01T00:01:00Z,2\n"
        "not-a-time,5\n"
        "2024-01-01T00:00:00Z,1\n",
        encoding="utf-8",
    )
    df = load_csv_prices(path)

    assert list(df["price"]) == [1.0, 2.0]
    assert df["timestamp"].notna().all()


def test_paper_replay_books_slippage(make_config):
    prices = _frame([100.0, 101.0, 102.0])

    paper = run_backtest(make_config(mode="paper", ema_fast=2, ema_slow=3), prices)
    quote = run_backtest(make_config(mode="quote", ema_fast=2, ema_slow=3), prices)

    assert paper.state.position.entry_price == pytest.approx(102.0 * (1 + PAPER_SLIPPAGE_BPS / 10_000))
    assert quote.state.position.entry_price == 102.0
