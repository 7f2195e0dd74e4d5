# flipbot/feeds/prices.py
"""
Price sources.

Responsibilities:
  - SimulatedPriceSource: random-walk price for quote / paper / live-stub runs.
  - HttpPriceSource: GET a JSON endpoint returning {"price": <number>}.
  - ReplayPriceSource: hands out the current candle price during a backtest.

Every source exposes get_price() -> float and raises PriceUnavailable
when it cannot produce a price. None of them retry: the main loop
counts the failure and tries again on the next tick.
"""
from __future__ import annotations

import random
from typing import Optional, Protocol

import requests

from config.config import PRICE_HTTP_TIMEOUT, SIM_START_PRICE, SIM_VOLATILITY
from flipbot.core.errors import PriceUnavailable
from flipbot.core.logger import log
from flipbot.core.models import BotConfig


class PriceSource(Protocol):
    kind: str

    def get_price(self) -> float:
        ...


# ─────────────────────────────────────────────
# SIMULATED RANDOM WALK
# ─────────────────────────────────────────────

class SimulatedPriceSource:
    """
    Each call moves the price by a uniform random fraction in
    [-volatility, +volatility] and returns the new value.
    """

    kind = "simulated"

    def __init__(
        self,
        start_price: float = SIM_START_PRICE,
        volatility: float = SIM_VOLATILITY,
        rng: Optional[random.Random] = None,
    ):
        self.price      = float(start_price)
        self.volatility = volatility
        self._rng       = rng or random.Random()

    def get_price(self) -> float:
        change = (self._rng.random() - 0.5) * 2 * self.volatility
        self.price = self.price * (1 + change)
        return self.price

    def reset_price(self, price: float) -> None:
        self.price = float(price)


# ─────────────────────────────────────────────
# HTTP ENDPOINT
# ─────────────────────────────────────────────

class HttpPriceSource:
    """Polls a price API. Any network, status or payload problem → PriceUnavailable."""

    kind = "http"

    def __init__(
        self,
        url: str,
        timeout: float = PRICE_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url      = url
        self.timeout  = timeout
        self._session = session or requests.Session()

    def get_price(self) -> float:
        try:
            resp = self._session.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise PriceUnavailable(f"Price API request failed: {e}") from e
        except ValueError as e:
            raise PriceUnavailable(f"Price API returned invalid JSON: {e}") from e

        price = data.get("price") if isinstance(data, dict) else None
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise PriceUnavailable("Price API response missing numeric 'price' field")
        return float(price)


# ─────────────────────────────────────────────
# REPLAY (BACKTEST)
# ─────────────────────────────────────────────

class ReplayPriceSource:
    """The backtest loop sets `price` before each tick; venues quote from it."""

    kind = "replay"

    def __init__(self) -> None:
        self.price: Optional[float] = None

    def set_price(self, price: float) -> None:
        self.price = float(price)

    def get_price(self) -> float:
        if self.price is None:
            raise PriceUnavailable("Replay has not started yet")
        return self.price


# ─────────────────────────────────────────────
# FACTORY
# ─────────────────────────────────────────────

def build_price_source(cfg: BotConfig) -> PriceSource:
    """HTTP feed when price_api_url is configured, random walk otherwise."""
    if cfg.price_api_url:
        log(f"[PRICE] HTTP {cfg.price_source} price from {cfg.price_api_url}")
        return HttpPriceSource(cfg.price_api_url)

    log(f"[PRICE] Simulated {cfg.price_source} price (random walk from {SIM_START_PRICE:.2f})")
    return SimulatedPriceSource()
