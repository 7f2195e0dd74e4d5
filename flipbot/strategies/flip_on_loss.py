# flipbot/strategies/flip_on_loss.py
"""
Flip-on-loss EMA strategy: per-tick state machine.

FLIP-ON-LOSS MODEL
───────────────────────────────────────────────────────────────────────────────
  TP hit → close, keep the same direction for the next entry
  SL hit → close, flip direction (LONG ↔ SHORT) for the next entry

  The EMA trend only picks the side of the very first trade. After that it
  is a gate: no entry while the trend is NEUTRAL, otherwise the stored
  bias decides, whatever the trend says.

TICK ORDER
───────────────────────────────────────────────────────────────────────────────
  1. append price to the candle window
  2. fast / slow EMA → trend
  3. IN_POSITION: TP, then SL (TP wins when one sample is through both)
     FLAT:        cooldown → kill switch → direction → open
  4. hourly / daily counter windows

STATE
───────────────────────────────────────────────────────────────────────────────
  SessionState is frozen. The module-level transition functions take the
  current value and return the next one; FlipOnLossEngine is the only
  holder and swaps its reference after every completed step, so a tick
  that fails half way keeps whatever it already finished.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from config.config import UTC, VERBOSE_TICKS
from flipbot.core.indicators import CandleWindow, determine_trend
from flipbot.core.logger import log_bot
from flipbot.core.models import (
    LONG, SHORT, UP, NEUTRAL,
    BotConfig, Candle, OrderResult, Position, SessionState, TickResult, Trade,
)
from flipbot.core.position_math import (
    calc_pnl, calc_position_size, calc_tp_sl, check_tp_sl, flip_direction,
)
from flipbot.core.risk import check_cooldown, check_kill_switch
from flipbot.core.session import new_session_state, reset_daily_counters, reset_hourly_counters
from flipbot.core.state import build_snapshot

if TYPE_CHECKING:
    from flipbot.exchange.venues import ExecutionVenue


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ─────────────────────────────────────────────
# PURE TRANSITIONS
# ─────────────────────────────────────────────

def decide_entry_direction(state: SessionState, trend: str) -> Tuple[SessionState, str]:
    """
    First trade ever: follow the trend and remember it as the bias.
    Every later entry: the stored bias, trend ignored.
    """
    if not state.trades:
        direction = LONG if trend == UP else SHORT
        return replace(state, current_direction=direction), direction
    return state, state.current_direction


def apply_open(
    state: SessionState,
    cfg: BotConfig,
    direction: str,
    margin: float,
    fill: OrderResult,
    now: datetime,
) -> SessionState:
    """Book a filled entry. TP/SL come from the fill price, not the quote."""
    tp, sl = calc_tp_sl(direction, fill.fill_price, cfg.tp_bps, cfg.sl_bps)
    position = Position(
        direction=direction,
        entry_price=fill.fill_price,
        size=fill.size,
        margin=margin,
        leverage=cfg.max_leverage,
        tp_price=tp,
        sl_price=sl,
        opened_at=now,
    )
    return replace(
        state,
        position=position,
        last_trade_time=now,
        trades_this_hour=state.trades_this_hour + 1,
    )


def apply_close(
    state: SessionState,
    cfg: BotConfig,
    exit_price: float,
    hit_tp: bool,
    now: datetime,
) -> Tuple[SessionState, Trade]:
    """
    Realize PnL and go flat.
      TP → consec_losses = consec_errors = 0, bias unchanged
      SL → consec_losses + 1, bias flipped
    """
    position = state.position
    if position is None:
        raise RuntimeError("apply_close called without an open position")

    pnl, pnl_pct = calc_pnl(position, exit_price, cfg.fee_bps)
    trade = Trade(
        direction=position.direction,
        entry_price=position.entry_price,
        exit_price=exit_price,
        size=position.size,
        pnl=pnl,
        pnl_pct=pnl_pct,
        hit_tp=hit_tp,
        hit_sl=not hit_tp,
        timestamp=now,
    )

    if hit_tp:
        counters = dict(consec_losses=0, consec_errors=0)
    else:
        counters = dict(
            consec_losses=state.consec_losses + 1,
            current_direction=flip_direction(state.current_direction),
        )

    nxt = replace(
        state,
        position=None,
        trades=state.trades + (trade,),
        current_equity=state.current_equity + pnl,
        last_trade_time=now,
        **counters,
    )
    return nxt, trade


def apply_kill_switch(state: SessionState, reason: str) -> SessionState:
    """Disable trading for the rest of the process. The first reason sticks."""
    if not state.trading_enabled:
        return state
    return replace(state, trading_enabled=False, kill_switch_reason=reason)


def apply_error(state: SessionState) -> SessionState:
    return replace(state, consec_errors=state.consec_errors + 1)


def performance_stats(state: SessionState) -> Dict[str, Any]:
    total   = len(state.trades)
    wins    = sum(1 for t in state.trades if t.hit_tp)
    losses  = sum(1 for t in state.trades if t.hit_sl)
    pnl     = state.current_equity - state.initial_equity
    return {
        "total_trades":   total,
        "winning_trades": wins,
        "losing_trades":  losses,
        "win_rate":       wins / total * 100 if total else 0.0,
        "total_pnl":      pnl,
        "total_pnl_pct":  pnl / state.initial_equity * 100,
    }


# ─────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────

class FlipOnLossEngine:
    """
    Owns the candle window and the session state for one instrument.
    Call tick() once per timeframe; call record_error() when a tick raised.
    """

    def __init__(
        self,
        cfg: BotConfig,
        venue: "ExecutionVenue",
        now: Optional[datetime] = None,
        verbose_ticks: bool = VERBOSE_TICKS,
    ):
        self.cfg     = cfg
        self.venue   = venue
        self.candles = CandleWindow(cfg.window_capacity)
        self._state  = new_session_state(cfg.initial_equity, now or _utc_now())
        self.verbose_ticks = verbose_ticks

        self.last_ema_fast: Optional[float] = None
        self.last_ema_slow: Optional[float] = None
        self.last_trend: str = NEUTRAL

    @property
    def state(self) -> SessionState:
        return self._state

    # ── tick ──────────────────────────────────────────────────────────────

    def tick(self, price: float, now: Optional[datetime] = None) -> TickResult:
        now = now or _utc_now()
        cfg = self.cfg

        self.candles.append(Candle(timestamp=now, price=price))

        fast, slow = self.candles.ema_pair(cfg.ema_fast, cfg.ema_slow)
        trend      = determine_trend(fast, slow)
        self.last_ema_fast, self.last_ema_slow, self.last_trend = fast, slow, trend

        if self.verbose_ticks:
            self._log_tick(price, fast, slow, trend)

        event: Optional[str] = None
        detail: Optional[str] = None

        if self._state.position is not None:
            event, detail = self._manage_position(price, now)
        elif self._state.trading_enabled and trend != NEUTRAL:
            event, detail = self._consider_entry(price, trend, now)

        self._state = reset_daily_counters(reset_hourly_counters(self._state, now), now)

        return TickResult(
            timestamp=now, price=price, ema_fast=fast, ema_slow=slow,
            trend=trend, event=event, detail=detail,
        )

    def _manage_position(self, price: float, now: datetime) -> Tuple[Optional[str], Optional[str]]:
        position = self._state.position
        hit_tp, hit_sl = check_tp_sl(position, price)
        if not (hit_tp or hit_sl):
            return None, None

        fill = self.venue.close_position(position)
        self._state, trade = apply_close(self._state, self.cfg, fill.fill_price, hit_tp, now)

        tag = "TP" if hit_tp else "SL"
        log_bot(
            self.cfg,
            f"[CLOSE] {tag} {trade.direction} entry={trade.entry_price:.2f} "
            f"exit={trade.exit_price:.2f} pnl={trade.pnl:+.2f} ({trade.pnl_pct:+.2f}%) "
            f"equity={self._state.current_equity:.2f} "
            f"consec_losses={self._state.consec_losses} "
            f"next={self._state.current_direction}",
            reason=tag,
            direction=trade.direction,
            entry=trade.entry_price,
            exit=trade.exit_price,
            pnl=round(trade.pnl, 4),
            pnl_pct=round(trade.pnl_pct, 4),
            equity=round(self._state.current_equity, 4),
            next_direction=self._state.current_direction,
        )
        return ("CLOSE_TP" if hit_tp else "CLOSE_SL"), tag

    def _consider_entry(
        self,
        price: float,
        trend: str,
        now: datetime,
    ) -> Tuple[Optional[str], Optional[str]]:
        cfg = self.cfg

        if not check_cooldown(self._state, cfg, now):
            return "COOLDOWN", None

        triggered, reason = check_kill_switch(self._state, cfg)
        if triggered:
            self.disable_trading(reason)
            return "KILL_SWITCH", reason

        self._state, direction = decide_entry_direction(self._state, trend)

        margin, size = calc_position_size(
            self._state.current_equity, cfg.margin_pct, cfg.max_leverage, price,
        )
        fill = self.venue.place_market_order(direction, size, cfg.max_leverage)
        self._state = apply_open(self._state, cfg, direction, margin, fill, now)

        pos = self._state.position
        log_bot(
            cfg,
            f"[OPEN] {direction} @ {pos.entry_price:.2f} (quote={price:.2f}) "
            f"size={pos.size:.6f} margin={pos.margin:.2f} lev={pos.leverage}x "
            f"TP={pos.tp_price:.2f} SL={pos.sl_price:.2f} trend={trend}",
            direction=direction,
            entry=pos.entry_price,
            quote=price,
            size=pos.size,
            margin=pos.margin,
            tp=pos.tp_price,
            sl=pos.sl_price,
            trades_this_hour=self._state.trades_this_hour,
        )
        return "OPEN", direction

    # ── errors / kill switch ─────────────────────────────────────────────

    def record_error(self, exc: BaseException, now: Optional[datetime] = None) -> None:
        """
        Count a failed tick and re-check the kill switch straight away, so an
        error burst alone can halt trading.
        """
        self._state = apply_error(self._state)
        log_bot(
            self.cfg,
            f"[ERROR] Tick failed: {type(exc).__name__}: {exc} "
            f"(consec_errors={self._state.consec_errors})",
            level="ERROR",
            error_type=type(exc).__name__,
            consec_errors=self._state.consec_errors,
        )
        triggered, reason = check_kill_switch(self._state, self.cfg)
        if triggered:
            self.disable_trading(reason)

    def disable_trading(self, reason: str) -> None:
        if not self._state.trading_enabled:
            return
        self._state = apply_kill_switch(self._state, reason)
        log_bot(
            self.cfg,
            f"[RISK] KILL SWITCH ACTIVATED: {reason} | monitoring continues, no new trades",
            level="ERROR",
            kill_switch_reason=reason,
        )

    # ── reporting ────────────────────────────────────────────────────────

    def stats(self) -> Dict[str, Any]:
        return performance_stats(self._state)

    def snapshot(self) -> Dict[str, Any]:
        return build_snapshot(self)

    def _log_tick(
        self,
        price: float,
        fast: Optional[float],
        slow: Optional[float],
        trend: str,
    ) -> None:
        pos = self._state.position
        fast_s = f"{fast:.2f}" if fast is not None else "N/A"
        slow_s = f"{slow:.2f}" if slow is not None else "N/A"
        pos_s  = f"{pos.direction} @ {pos.entry_price:.2f}" if pos else "None"
        log_bot(
            self.cfg,
            f"[TICK] price={price:.2f} EMA{self.cfg.ema_fast}={fast_s} "
            f"EMA{self.cfg.ema_slow}={slow_s} trend={trend} pos={pos_s} "
            f"equity={self._state.current_equity:.2f}",
        )
