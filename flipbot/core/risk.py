# flipbot/core/risk.py
"""
Risk management:
  1. Kill switch: daily loss, consecutive losses, consecutive errors,
     hourly trade cap (checked in that order, first breach wins).
  2. Cooldown: minimum gap between the last trade event and a new entry.

Both checks are stateless. Making the kill switch permanent is the
engine's job: it disables trading and never turns it back on.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from flipbot.core.models import BotConfig, SessionState


# ─────────────────────────────────────────────
# KILL SWITCH
# ─────────────────────────────────────────────

def daily_loss_pct(state: "SessionState") -> float:
    """Loss since the daily baseline, in % of the baseline (negative = gain)."""
    return (state.daily_start_equity - state.current_equity) / state.daily_start_equity * 100


def check_kill_switch(
    state: "SessionState",
    cfg: "BotConfig",
) -> Tuple[bool, Optional[str]]:
    """
    Returns (triggered: bool, reason: str|None).

    Checks (all boundary-inclusive):
      1. daily loss %        >= max_daily_loss_pct
      2. consecutive losses  >= max_consec_losses
      3. consecutive errors  >= max_consec_errors
      4. trades this hour    >= max_trades_per_hour
    """
    loss_pct = daily_loss_pct(state)
    if loss_pct >= cfg.max_daily_loss_pct:
        return True, f"Daily loss {loss_pct:.2f}% >= {cfg.max_daily_loss_pct}%"

    if state.consec_losses >= cfg.max_consec_losses:
        return True, f"Consecutive losses {state.consec_losses} >= {cfg.max_consec_losses}"

    if state.consec_errors >= cfg.max_consec_errors:
        return True, f"Consecutive errors {state.consec_errors} >= {cfg.max_consec_errors}"

    if state.trades_this_hour >= cfg.max_trades_per_hour:
        return True, f"Trades this hour {state.trades_this_hour} >= {cfg.max_trades_per_hour}"

    return False, None


# ─────────────────────────────────────────────
# COOLDOWN
# ─────────────────────────────────────────────

def check_cooldown(state: "SessionState", cfg: "BotConfig", now: datetime) -> bool:
    """
    True when a new entry is allowed: no trade yet, or at least
    cfg.cooldown_ms (live or paper value, by mode) since the last one.
    """
    if state.last_trade_time is None:
        return True
    return now - state.last_trade_time >= timedelta(milliseconds=cfg.cooldown_ms)
