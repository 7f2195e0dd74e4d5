# flipbot/core/position_math.py
"""
Position arithmetic.
Every function here is pure: numbers and frozen dataclasses in, tuples out.

  calc_tp_sl(): TP / SL prices from entry and bps offsets
  calc_position_size(): margin and size from equity, margin %, leverage
  calc_pnl(): realized PnL net of round-trip fees
  check_tp_sl(): has the current price reached TP and/or SL
  flip_direction(): LONG <-> SHORT
"""
from __future__ import annotations

from typing import Tuple

from flipbot.core.models import LONG, SHORT, Position

BPS = 10_000.0


def calc_tp_sl(
    direction: str,
    entry_price: float,
    tp_bps: float,
    sl_bps: float,
) -> Tuple[float, float]:
    """Returns (tp_price, sl_price). SHORT mirrors LONG around the entry."""
    if direction == LONG:
        return (
            entry_price * (1 + tp_bps / BPS),
            entry_price * (1 - sl_bps / BPS),
        )
    return (
        entry_price * (1 - tp_bps / BPS),
        entry_price * (1 + sl_bps / BPS),
    )


def calc_position_size(
    equity: float,
    margin_pct: float,
    leverage: float,
    price: float,
) -> Tuple[float, float]:
    """
    Returns (margin, size).
      margin = equity × margin_pct / 100
      size   = margin × leverage / price
    No lot-size rounding: the venue gets the raw size.
    """
    margin = equity * margin_pct / 100
    size   = margin * leverage / price
    return margin, size


def calc_pnl(position: Position, exit_price: float, fee_bps: float) -> Tuple[float, float]:
    """
    Returns (pnl, pnl_pct).

    Fees are charged on entry notional for both legs (× 2).
    pnl_pct is relative to margin, not notional.
    """
    if position.direction == LONG:
        price_diff = exit_price - position.entry_price
    else:
        price_diff = position.entry_price - exit_price

    gross    = price_diff * position.size
    notional = position.size * position.entry_price
    fees     = notional * 2 * fee_bps / BPS
    pnl      = gross - fees

    return pnl, pnl / position.margin * 100


def check_tp_sl(position: Position, price: float) -> Tuple[bool, bool]:
    """Returns (hit_tp, hit_sl); both are evaluated, the caller decides order."""
    if position.direction == LONG:
        return price >= position.tp_price, price <= position.sl_price
    return price <= position.tp_price, price >= position.sl_price


def flip_direction(direction: str) -> str:
    return SHORT if direction == LONG else LONG
