from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from pytz import timezone

from flipbot.core.loader import DEFAULTS
from flipbot.core.models import BotConfig, OrderResult
from flipbot.core.session import new_session_state

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone("UTC"))


class FakeVenue:
    """Fills at `price + offset`; optionally raises on the next call."""

    kind = "fake"

    def __init__(self):
        self.price = None
        self.offset = 0.0
        self.fail_with = None
        self.orders = []
        self.closes = []

    def place_market_order(self, direction, size, leverage):
        if self.fail_with is not None:
            raise self.fail_with
        self.orders.append((direction, size, leverage))
        return OrderResult("fake-open", self.price + self.offset, size, T0)

    def close_position(self, position):
        if self.fail_with is not None:
            raise self.fail_with
        self.closes.append(position)
        return OrderResult("fake-close", self.price + self.offset, position.size, T0)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_config():
    def _make(**overrides):
        return replace(BotConfig(**DEFAULTS), **overrides)
    return _make


@pytest.fixture
def make_state():
    def _make(now=T0, initial_equity=10000.0, **overrides):
        return replace(new_session_state(initial_equity, now), **overrides)
    return _make


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def feed(venue):
    """feed(engine, [p1, p2, ...], start=0) → list of TickResult, one second apart."""
    def _feed(engine, prices, start=0, step=timedelta(seconds=1)):
        results = []
        for i, price in enumerate(prices, start=start):
            venue.price = price
            results.append(engine.tick(price, T0 + i * step))
        return results
    return _feed
