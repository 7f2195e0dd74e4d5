# flipbot/core/state.py
"""
Bot state snapshot.
Writes a human-readable JSON snapshot every tick for external monitoring
(dashboards, watchdog scripts, etc.). The file is never read back:
a restart always begins a fresh session.
"""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

from config.config import BOT_NAME, STATE_PATH, UTC
from flipbot.core.logger import log

if TYPE_CHECKING:
    from flipbot.strategies.flip_on_loss import FlipOnLossEngine


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def build_snapshot(engine: "FlipOnLossEngine") -> Dict[str, Any]:
    """Plain-dict view of the engine: config, session counters, position, stats."""
    cfg = engine.cfg
    st  = engine.state
    pos = st.position

    recent_trades = [
        {
            "direction":   t.direction,
            "entry_price": t.entry_price,
            "exit_price":  t.exit_price,
            "size":        t.size,
            "pnl":         t.pnl,
            "pnl_pct":     t.pnl_pct,
            "result":      "TP" if t.hit_tp else "SL",
            "time_utc":    _iso(t.timestamp),
        }
        for t in st.trades[-10:]
    ]

    return {
        "bot_name":    BOT_NAME,
        "updated_utc": datetime.now(UTC).isoformat(),
        "config": {
            "mode":         cfg.mode,
            "market":       cfg.market,
            "ema_fast":     cfg.ema_fast,
            "ema_slow":     cfg.ema_slow,
            "tf_seconds":   cfg.tf_seconds,
            "tp_bps":       cfg.tp_bps,
            "sl_bps":       cfg.sl_bps,
            "fee_bps":      cfg.fee_bps,
            "margin_pct":   cfg.margin_pct,
            "max_leverage": cfg.max_leverage,
        },
        "indicators": {
            "candles":  len(engine.candles),
            "ema_fast": engine.last_ema_fast,
            "ema_slow": engine.last_ema_slow,
            "trend":    engine.last_trend,
        },
        "session": {
            "current_direction":  st.current_direction,
            "initial_equity":     st.initial_equity,
            "current_equity":     st.current_equity,
            "daily_start_equity": st.daily_start_equity,
            "daily_start_utc":    _iso(st.daily_start_time),
            "consec_losses":      st.consec_losses,
            "consec_errors":      st.consec_errors,
            "trades_this_hour":   st.trades_this_hour,
            "hour_start_utc":     _iso(st.hour_start_time),
            "last_trade_utc":     _iso(st.last_trade_time),
            "trading_enabled":    st.trading_enabled,
            "kill_switch_reason": st.kill_switch_reason,
        },
        "position": None if pos is None else {
            "direction":     pos.direction,
            "entry_price":   pos.entry_price,
            "size":          pos.size,
            "margin":        pos.margin,
            "leverage":      pos.leverage,
            "tp_price":      pos.tp_price,
            "sl_price":      pos.sl_price,
            "opened_at_utc": _iso(pos.opened_at),
        },
        "recent_trades": recent_trades,
        "stats":         engine.stats(),
    }


def write_state(engine: "FlipOnLossEngine", path: Path = STATE_PATH) -> None:
    """
    Dump the snapshot to `path`.
    Never raises.
    """
    try:
        payload = build_snapshot(engine)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
    except Exception as e:
        log(f"[STATE] Failed to write state: {e}", level="WARN")
