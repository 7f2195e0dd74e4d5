# flipbot/core/models.py
"""
All shared dataclasses for the bot.
Pure data containers, no business logic.

Everything except the candle window is frozen: state transitions build a
new value with dataclasses.replace() and hand it back to the engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

# ─────────────────────────────────────────────
# ENUM-LIKE STRING CONSTANTS
# ─────────────────────────────────────────────

LONG  = "LONG"
SHORT = "SHORT"
DIRECTIONS = (LONG, SHORT)

UP      = "UP"
DOWN    = "DOWN"
NEUTRAL = "NEUTRAL"

MODES        = ("quote", "paper", "live")
LIVE_MODES   = ("stub", "real")
PRICE_KINDS  = ("index", "mark")


# ─────────────────────────────────────────────
# MARKET DATA
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class Candle:
    """One sampled price per timeframe tick."""
    timestamp: datetime   # UTC-aware
    price:     float


# ─────────────────────────────────────────────
# POSITIONS / TRADES
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class Position:
    """The single open position. TP/SL are fixed at open and never move."""
    direction:   str        # "LONG" | "SHORT"
    entry_price: float      # actual fill price
    size:        float      # base units
    margin:      float      # quote currency committed
    leverage:    float
    tp_price:    float
    sl_price:    float
    opened_at:   datetime


@dataclass(frozen=True)
class Trade:
    """One closed position. Appended to history exactly once per close."""
    direction:   str
    entry_price: float
    exit_price:  float
    size:        float
    pnl:         float
    pnl_pct:     float      # % of margin
    hit_tp:      bool
    hit_sl:      bool
    timestamp:   datetime


@dataclass(frozen=True)
class OrderResult:
    """What a venue reports back for a market order or a close."""
    order_id:   str
    fill_price: float
    size:       float
    timestamp:  datetime


# ─────────────────────────────────────────────
# BOT CONFIGURATION
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class BotConfig:
    """
    Full trading parameter set.
    Populated from bot.yaml (+ env overrides) by flipbot/core/loader.py.
    """

    # Mode
    mode:      str               # quote | paper | live
    live_mode: str               # stub | real

    # Market
    market:        str
    price_source:  str           # index | mark
    price_api_url: Optional[str]
    max_leverage:  float

    # Strategy
    margin_pct:     float
    tp_bps:         float
    sl_bps:         float
    fee_bps:        float
    ema_fast:       int
    ema_slow:       int
    tf_seconds:     float
    initial_equity: float

    # Cooldown
    cooldown_ms_paper: int
    cooldown_ms_live:  int

    # Kill switch
    max_daily_loss_pct:  float
    max_consec_losses:   int
    max_trades_per_hour: int
    max_consec_errors:   int

    @property
    def window_capacity(self) -> int:
        return 2 * max(self.ema_fast, self.ema_slow)

    @property
    def cooldown_ms(self) -> int:
        return self.cooldown_ms_live if self.mode == "live" else self.cooldown_ms_paper


# ─────────────────────────────────────────────
# SESSION STATE
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class SessionState:
    """
    Everything the engine knows about the running session.
    Only FlipOnLossEngine holds the current value.
    """
    position: Optional[Position]
    trades:   Tuple[Trade, ...]

    # Flip-on-loss bias for the next entry
    current_direction: str

    # Equity (realized PnL only)
    initial_equity: float
    current_equity: float

    # Kill switch tracking
    daily_start_equity: float
    daily_start_time:   datetime
    consec_losses:      int
    consec_errors:      int
    trades_this_hour:   int
    hour_start_time:    datetime

    # Cooldown tracking
    last_trade_time: Optional[datetime]

    trading_enabled:    bool
    kill_switch_reason: Optional[str]


@dataclass(frozen=True)
class TickResult:
    """Summary of one engine tick (for logging and tests)."""
    timestamp: datetime
    price:     float
    ema_fast:  Optional[float]
    ema_slow:  Optional[float]
    trend:     str
    event:     Optional[str] = None   # OPEN | CLOSE_TP | CLOSE_SL | KILL_SWITCH | COOLDOWN
    detail:    Optional[str] = None
