# flipbot/backtest.py
"""
Backtest replay. Feeds a historical price sequence through the same
FlipOnLossEngine the live loop uses.

Run from project root:
    python -m flipbot.backtest --csv data/btc_1m.csv
    python -m flipbot.backtest --api-url https://example.com/prices
    python -m flipbot.backtest --symbol BTCUSDT --interval 1m --limit 1000

Price sources (first one given wins):
  --csv      CSV with columns timestamp, price
  --api-url  JSON list of {"timestamp": ..., "price": ...}
  default    Binance spot klines (close price, open time)

Candle timestamps drive cooldown and the hourly / daily counters, so a
replay respects the same time rules as a live run.

Orders go through the venue cfg.mode selects, quoting the candle price:
quote and live-stub book fills at the candle price, paper books them
PAPER_SLIPPAGE_BPS against the taker on every open and close. Run with
mode=quote for fills exactly at candle prices.
"""
from __future__ import annotations

import argparse
import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from config.config import BINANCE_KLINES_URL, BINANCE_MAX_LIMIT, PRICE_HTTP_TIMEOUT
from flipbot.core.errors import ConfigurationError, PriceUnavailable
from flipbot.core.loader import load_config
from flipbot.core.logger import init_logger, log
from flipbot.core.models import BotConfig
from flipbot.exchange.venues import build_venue
from flipbot.feeds.prices import ReplayPriceSource
from flipbot.strategies.flip_on_loss import FlipOnLossEngine


# ─────────────────────────────────────────────
# DATA LOADING
# ─────────────────────────────────────────────

def _normalise(df: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce to [timestamp (UTC), price (float)], drop unusable rows,
    sort chronologically (stable, so equal timestamps keep file order).
    """
    missing = [c for c in ("timestamp", "price") if c not in df.columns]
    if missing:
        raise ValueError(f"Historical data is missing columns: {missing}")

    out = df[["timestamp", "price"]].copy()
    if pd.api.types.is_numeric_dtype(out["timestamp"]):
        out["timestamp"] = pd.to_datetime(out["timestamp"], unit="ms", utc=True, errors="coerce")
    else:
        out["timestamp"] = pd.to_datetime(out["timestamp"], utc=True, errors="coerce")
    out["price"] = pd.to_numeric(out["price"], errors="coerce")

    dropped = len(out)
    out = out.dropna().loc[lambda d: d["price"] > 0]
    dropped -= len(out)
    if dropped:
        log(f"[BACKTEST] Dropped {dropped} row(s) with unusable timestamp or price", level="WARN")
    return out.sort_values("timestamp", kind="stable").reset_index(drop=True)


def load_csv_prices(path: Path) -> pd.DataFrame:
    return _normalise(pd.read_csv(path))


def fetch_api_prices(url: str, timeout: float = PRICE_HTTP_TIMEOUT) -> pd.DataFrame:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise PriceUnavailable(f"Historical API error: {e}") from e

    if not isinstance(payload, list):
        raise PriceUnavailable("Historical API response must be an array")
    return _normalise(pd.DataFrame(payload, columns=["timestamp", "price"]))


def fetch_binance_klines(
    symbol: str = "BTCUSDT",
    interval: str = "1m",
    limit: int = 1000,
    timeout: float = PRICE_HTTP_TIMEOUT,
) -> pd.DataFrame:
    """Kline open time → timestamp, close → price."""
    params = {"symbol": symbol, "interval": interval, "limit": min(limit, BINANCE_MAX_LIMIT)}
    try:
        resp = requests.get(BINANCE_KLINES_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise PriceUnavailable(f"Binance API error: {e}") from e

    if not isinstance(payload, list):
        raise PriceUnavailable("Binance API response must be an array")

    df = pd.DataFrame(
        [{"timestamp": k[0], "price": k[4]} for k in payload],
        columns=["timestamp", "price"],
    )
    return _normalise(df)


def interval_to_seconds(interval: str) -> Optional[int]:
    """'15s' → 15, '1m' → 60, '4h' → 14400, '1d' → 86400; None if unparseable."""
    m = re.fullmatch(r"(\d+)([smhd])", interval.strip())
    if not m:
        return None
    mult = {"s": 1, "m": 60, "h": 3600, "d": 86400}[m.group(2)]
    return int(m.group(1)) * mult


# ─────────────────────────────────────────────
# REPLAY
# ─────────────────────────────────────────────

def run_backtest(cfg: BotConfig, prices: pd.DataFrame, verbose_ticks: bool = False) -> FlipOnLossEngine:
    """
    Replay every row through a fresh engine and return it.
    Stops early only when a tick error trips the kill switch.
    """
    if prices.empty:
        raise ValueError("No historical data available for backtest")

    replay = ReplayPriceSource()
    venue  = build_venue(cfg, replay)
    start  = prices["timestamp"].iloc[0].to_pydatetime()
    engine = FlipOnLossEngine(cfg, venue, now=start, verbose_ticks=verbose_ticks)

    for row in prices.itertuples(index=False):
        ts    = row.timestamp.to_pydatetime()
        price = float(row.price)
        try:
            replay.set_price(price)
            engine.tick(price, ts)
        except Exception as e:
            engine.record_error(e, ts)
            if not engine.state.trading_enabled:
                break

    return engine


def summarize(engine: FlipOnLossEngine, prices: pd.DataFrame) -> Dict[str, Any]:
    stats = engine.stats()
    return {
        "data_points":        len(prices),
        "start":              prices["timestamp"].iloc[0].isoformat(),
        "end":                prices["timestamp"].iloc[-1].isoformat(),
        "final_equity":       engine.state.current_equity,
        "kill_switch_reason": engine.state.kill_switch_reason,
        **stats,
    }


def print_summary(summary: Dict[str, Any]) -> None:
    log("=== Backtest Summary ===")
    log(f"Data points:    {summary['data_points']}")
    log(f"Start:          {summary['start']}")
    log(f"End:            {summary['end']}")
    log(f"Total trades:   {summary['total_trades']}")
    log(f"Winning trades: {summary['winning_trades']}")
    log(f"Losing trades:  {summary['losing_trades']}")
    log(f"Win rate:       {summary['win_rate']:.2f}%")
    log(f"Total PnL:      ${summary['total_pnl']:.2f} ({summary['total_pnl_pct']:.2f}%)")
    if summary["kill_switch_reason"]:
        log(f"Kill switch:    {summary['kill_switch_reason']}")


# ─────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────

def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Replay historical prices through the flip-on-loss engine.")
    p.add_argument("--csv", type=Path, help="CSV file with timestamp,price columns")
    p.add_argument("--api-url", help="URL returning a JSON list of {timestamp, price}")
    p.add_argument("--symbol", default="BTCUSDT", help="Binance symbol (default BTCUSDT)")
    p.add_argument("--interval", default="1m", help="Binance kline interval (default 1m)")
    p.add_argument("--limit", type=int, default=1000, help="Binance kline count, max 1000")
    p.add_argument("--initial-equity", type=float, help="Override initial equity")
    p.add_argument("--verbose", action="store_true", help="Log every tick")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    init_logger("FlipBot_Backtest", None)

    try:
        cfg = load_config()
    except ConfigurationError as e:
        log(f"[CONFIG] {e}", level="ERROR")
        sys.exit(1)

    if args.initial_equity is not None:
        if args.initial_equity <= 0:
            log("[CONFIG] --initial-equity must be > 0", level="ERROR")
            sys.exit(1)
        cfg = replace(cfg, initial_equity=args.initial_equity)

    try:
        if args.csv:
            prices = load_csv_prices(args.csv)
        elif args.api_url:
            prices = fetch_api_prices(args.api_url)
        else:
            seconds = interval_to_seconds(args.interval)
            if seconds is not None and seconds != cfg.tf_seconds:
                log(
                    f"[BACKTEST] interval={args.interval} ({seconds}s) differs from "
                    f"tf_seconds={cfg.tf_seconds}",
                    level="WARN",
                )
            prices = fetch_binance_klines(args.symbol, args.interval, args.limit)
    except (PriceUnavailable, ValueError, OSError) as e:
        log(f"[BACKTEST] Failed to load historical data: {e}", level="ERROR")
        sys.exit(1)

    if prices.empty:
        log("[BACKTEST] No historical data available", level="ERROR")
        sys.exit(1)

    engine = run_backtest(cfg, prices, verbose_ticks=args.verbose)
    print_summary(summarize(engine, prices))


if __name__ == "__main__":
    main()
