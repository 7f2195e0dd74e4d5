# flipbot/exchange/venues.py
"""
Execution venues. The only place orders "happen".

Functions / classes:
  ExecutionVenue: the interface the engine talks to (kind tag + 2 calls)
  QuoteVenue: never trades; logs what it would do, fills at the quote
  PaperVenue: simulated taker fill with slippage against us
  LiveVenue: "stub": logs and fills at the quote; "real": not wired
  build_venue(): pick the variant from cfg.mode

Every venue quotes from the PriceSource it was built with, so the fill
price can differ from the tick price the engine decided on. The engine
always books the returned fill_price.
"""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from config.config import PAPER_SLIPPAGE_BPS, UTC, VERBOSE_VENUE
from flipbot.core.errors import ExecutionFailure, PriceUnavailable
from flipbot.core.logger import log_bot
from flipbot.core.models import LONG, BotConfig, OrderResult, Position
from flipbot.feeds.prices import PriceSource


class ExecutionVenue(Protocol):
    kind: str   # "quote" | "paper" | "live"

    def place_market_order(self, direction: str, size: float, leverage: float) -> OrderResult:
        ...

    def close_position(self, position: Position) -> OrderResult:
        ...


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _utc_now() -> datetime:
    return datetime.now(UTC)


def _order_id(prefix: str, ts: datetime) -> str:
    return f"{prefix}-{int(ts.timestamp() * 1000)}"


def _quote(prices: PriceSource) -> float:
    """Fetch the execution quote; a dead feed means the order cannot be placed."""
    try:
        return prices.get_price()
    except PriceUnavailable as e:
        raise ExecutionFailure(f"No quote for order: {e}") from e


# ─────────────────────────────────────────────
# QUOTE  (log only)
# ─────────────────────────────────────────────

class QuoteVenue:
    kind = "quote"

    def __init__(self, cfg: BotConfig, prices: PriceSource):
        self.cfg    = cfg
        self.prices = prices

    def place_market_order(self, direction: str, size: float, leverage: float) -> OrderResult:
        price = _quote(self.prices)
        now   = _utc_now()
        if VERBOSE_VENUE:
            log_bot(
                self.cfg,
                f"[QUOTE] Would place {direction} market order "
                f"size={size:.6f} leverage={leverage}x price={price:.2f}",
                direction=direction, size=size, leverage=leverage, price=price,
            )
        return OrderResult(order_id=_order_id("quote", now), fill_price=price, size=size, timestamp=now)

    def close_position(self, position: Position) -> OrderResult:
        price = _quote(self.prices)
        now   = _utc_now()
        if VERBOSE_VENUE:
            log_bot(
                self.cfg,
                f"[QUOTE] Would close {position.direction} "
                f"entry={position.entry_price:.2f} exit={price:.2f} size={position.size:.6f}",
                direction=position.direction, entry=position.entry_price, exit=price,
            )
        return OrderResult(
            order_id=_order_id("quote-close", now), fill_price=price,
            size=position.size, timestamp=now,
        )


# ─────────────────────────────────────────────
# PAPER  (simulated fill with slippage)
# ─────────────────────────────────────────────

class PaperVenue:
    """
    Buys fill above the quote, sells fill below it:
      open LONG / close SHORT → quote × (1 + slippage)
      open SHORT / close LONG → quote × (1 − slippage)
    """

    kind = "paper"

    def __init__(self, cfg: BotConfig, prices: PriceSource, slippage_bps: float = PAPER_SLIPPAGE_BPS):
        self.cfg          = cfg
        self.prices       = prices
        self.slippage_bps = slippage_bps

    def _fill(self, base: float, buying: bool) -> float:
        sign = 1 if buying else -1
        return base * (1 + sign * self.slippage_bps / 10_000)

    def place_market_order(self, direction: str, size: float, leverage: float) -> OrderResult:
        base = _quote(self.prices)
        fill = self._fill(base, buying=direction == LONG)
        now  = _utc_now()
        if VERBOSE_VENUE:
            log_bot(
                self.cfg,
                f"[PAPER] {direction} fill={fill:.2f} base={base:.2f} "
                f"size={size:.6f} leverage={leverage}x",
                direction=direction, base=base, fill=fill, size=size, leverage=leverage,
            )
        return OrderResult(order_id=_order_id("paper", now), fill_price=fill, size=size, timestamp=now)

    def close_position(self, position: Position) -> OrderResult:
        base = _quote(self.prices)
        fill = self._fill(base, buying=position.direction != LONG)
        now  = _utc_now()
        if VERBOSE_VENUE:
            log_bot(
                self.cfg,
                f"[PAPER] close {position.direction} entry={position.entry_price:.2f} "
                f"fill={fill:.2f} base={base:.2f} size={position.size:.6f}",
                direction=position.direction, entry=position.entry_price, base=base, fill=fill,
            )
        return OrderResult(
            order_id=_order_id("paper-close", now), fill_price=fill,
            size=position.size, timestamp=now,
        )


# ─────────────────────────────────────────────
# LIVE
# ─────────────────────────────────────────────

class LiveVenue:
    """
    live_mode="stub": no real orders, acts as if filled at the quote.
    live_mode="real": exchange integration does not exist; every call fails.
    """

    kind = "live"

    def __init__(self, cfg: BotConfig, prices: PriceSource):
        self.cfg    = cfg
        self.prices = prices

    def _require_stub(self) -> None:
        if self.cfg.live_mode == "real":
            raise ExecutionFailure(
                "Live trading integration is not implemented. "
                "Set live_mode=stub for simulated live mode."
            )

    def place_market_order(self, direction: str, size: float, leverage: float) -> OrderResult:
        self._require_stub()
        price = _quote(self.prices)
        now   = _utc_now()
        log_bot(
            self.cfg,
            f"[LIVE-STUB] {direction} market order size={size:.6f} "
            f"leverage={leverage}x price={price:.2f}",
            direction=direction, size=size, leverage=leverage, price=price,
        )
        return OrderResult(order_id=_order_id("live-stub", now), fill_price=price, size=size, timestamp=now)

    def close_position(self, position: Position) -> OrderResult:
        self._require_stub()
        price = _quote(self.prices)
        now   = _utc_now()
        log_bot(
            self.cfg,
            f"[LIVE-STUB] close {position.direction} entry={position.entry_price:.2f} "
            f"exit={price:.2f} size={position.size:.6f}",
            direction=position.direction, entry=position.entry_price, exit=price,
        )
        return OrderResult(
            order_id=_order_id("live-stub-close", now), fill_price=price,
            size=position.size, timestamp=now,
        )


# ─────────────────────────────────────────────
# FACTORY
# ─────────────────────────────────────────────

def build_venue(cfg: BotConfig, prices: PriceSource) -> ExecutionVenue:
    if cfg.mode == "paper":
        return PaperVenue(cfg, prices)
    if cfg.mode == "live":
        return LiveVenue(cfg, prices)
    return QuoteVenue(cfg, prices)
