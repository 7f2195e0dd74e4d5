# flipbot/main.py
"""
FlipBot EMA scalper entry point.

Run from project root:
    python -m flipbot.main

The main loop is intentionally thin. All business logic lives in:
  · flipbot/strategies/flip_on_loss.py: trend gate, entries, TP/SL exits
  · flipbot/core/risk.py: kill switch + cooldown
  · flipbot/core/session.py: hourly / daily counter windows
  · flipbot/exchange/venues.py: quote / paper / live fills
  · flipbot/feeds/prices.py: price acquisition
"""
from __future__ import annotations

import signal
import sys
import threading
from datetime import datetime
from typing import Optional

# ── Bootstrap: logger and config must be imported first ──────────────────────
from config.config import BOT_NAME, LOG_LEVEL, LOG_PATH, STATE_PATH, EQUITY_HEARTBEAT_SECONDS, UTC
from flipbot.core.errors import ConfigurationError
from flipbot.core.loader import load_config
from flipbot.core.logger import init_logger, log, log_bot
from flipbot.core.state import write_state
from flipbot.exchange.venues import build_venue
from flipbot.feeds.prices import PriceSource, build_price_source
from flipbot.strategies.flip_on_loss import FlipOnLossEngine


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ─────────────────────────────────────────────
# EQUITY HEARTBEAT
# ─────────────────────────────────────────────

_last_heartbeat_utc: Optional[datetime] = None


def _maybe_log_equity(engine: FlipOnLossEngine, now: datetime) -> None:
    """Log equity + running stats every EQUITY_HEARTBEAT_SECONDS."""
    global _last_heartbeat_utc
    if EQUITY_HEARTBEAT_SECONDS <= 0:
        return

    last = _last_heartbeat_utc
    if last is not None and (now - last).total_seconds() < EQUITY_HEARTBEAT_SECONDS:
        return

    st    = engine.state
    stats = engine.stats()
    log_bot(
        engine.cfg,
        f"[HEARTBEAT] equity={st.current_equity:.2f} trades={stats['total_trades']} "
        f"win_rate={stats['win_rate']:.1f}% pnl={stats['total_pnl']:+.2f} "
        f"trading={'ON' if st.trading_enabled else 'OFF'}",
        equity=st.current_equity,
        **stats,
    )
    _last_heartbeat_utc = now


def log_final_stats(engine: FlipOnLossEngine) -> None:
    stats = engine.stats()
    st    = engine.state
    log("=" * 60)
    log("Final Statistics")
    log("=" * 60)
    log(f"Total trades:   {stats['total_trades']}")
    log(f"Winning trades: {stats['winning_trades']}")
    log(f"Losing trades:  {stats['losing_trades']}")
    log(f"Win rate:       {stats['win_rate']:.2f}%")
    log(f"Total PnL:      ${stats['total_pnl']:.2f} ({stats['total_pnl_pct']:.2f}%)")
    log(f"Final equity:   ${st.current_equity:.2f}")
    if st.kill_switch_reason:
        log(f"Kill switch:    {st.kill_switch_reason}")
    log("=" * 60, **stats)


# ─────────────────────────────────────────────
# MAIN LOOP
# ─────────────────────────────────────────────

def run_loop(
    engine: FlipOnLossEngine,
    prices: PriceSource,
    stop_event: threading.Event,
    max_ticks: Optional[int] = None,
    write_snapshots: bool = True,
) -> int:
    """
    One tick per timeframe until stop_event is set.
    Returns the number of ticks attempted.
    """
    ticks = 0
    log(f"=== {BOT_NAME} started ===")

    while not stop_event.is_set():
        now = _utc_now()
        try:
            # ── 1: Price ─────────────────────────────────────────────────
            price = prices.get_price()

            # ── 2: Decide + execute ──────────────────────────────────────
            engine.tick(price, now)

        except KeyboardInterrupt:
            log("[MAIN] KeyboardInterrupt, stopping bot.")
            break
        except Exception as e:
            # PriceUnavailable / ExecutionFailure / anything else: count it, keep going
            engine.record_error(e, now)

        # ── 3: Heartbeat + state snapshot ────────────────────────────────
        _maybe_log_equity(engine, now)
        if write_snapshots:
            write_state(engine, STATE_PATH)

        ticks += 1
        if max_ticks is not None and ticks >= max_ticks:
            break

        stop_event.wait(engine.cfg.tf_seconds)

    log(f"=== {BOT_NAME} stopped ===")
    return ticks


def install_signal_handlers(stop_event: threading.Event) -> None:
    """SIGINT / SIGTERM only flip the flag; the current tick finishes normally."""

    def _handler(signum, _frame):
        log(f"[MAIN] Signal {signum} received, stopping after current tick", level="WARN")
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


# ─────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────

def main() -> None:
    # 1) Init logger first (so all subsequent log() calls work)
    init_logger(BOT_NAME, LOG_PATH, LOG_LEVEL)
    log(f"Log file  : {LOG_PATH.resolve()}")
    log(f"State file: {STATE_PATH.resolve()}")

    # 2) Config (fatal if invalid)
    try:
        cfg = load_config()
    except ConfigurationError as e:
        log(f"[CONFIG] {e}", level="ERROR")
        sys.exit(1)

    # 3) Collaborators + engine
    prices = build_price_source(cfg)
    venue  = build_venue(cfg, prices)
    engine = FlipOnLossEngine(cfg, venue)

    log_bot(
        cfg,
        f"[ENGINE] venue={venue.kind} equity={cfg.initial_equity:.2f} | "
        f"EMA({cfg.ema_fast})/EMA({cfg.ema_slow}) on {cfg.tf_seconds}s candles | "
        f"TP={cfg.tp_bps}bps SL={cfg.sl_bps}bps | "
        f"lev={cfg.max_leverage}x margin={cfg.margin_pct}%",
    )

    # 4) Run
    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    try:
        run_loop(engine, prices, stop_event)
    finally:
        log_final_stats(engine)


if __name__ == "__main__":
    main()
