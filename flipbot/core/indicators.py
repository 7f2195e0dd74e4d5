# flipbot/core/indicators.py
"""
Trend indicator calculations.
compute_ema / determine_trend are pure: candles in, number or label out.
No side effects, no global state.

CandleWindow is the bounded, chronologically ordered price buffer the
engine appends to once per tick.
"""
from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import pandas as pd

from flipbot.core.models import Candle, UP, DOWN, NEUTRAL


# ─────────────────────────────────────────────
# EMA  (Exponential Moving Average)
# ─────────────────────────────────────────────

def compute_ema(window: Sequence[Candle], period: int) -> Optional[float]:
    """
    EMA(period) over the window, oldest candle first.

    Seeded with the simple average of the first `period` prices, then
    ema = (price - ema) * 2/(period+1) + ema for every later candle.
    Returns None when the window holds fewer than `period` candles.
    """
    if len(window) < period:
        return None

    close = pd.Series([c.price for c in window], dtype="float64")

    # flat seed: ewm(adjust=False) holds the SMA through the first `period` rows
    close.iloc[:period] = close.iloc[:period].mean()
    ema = close.ewm(span=period, adjust=False).mean()

    return float(ema.iloc[-1])


# ─────────────────────────────────────────────
# TREND
# ─────────────────────────────────────────────

def determine_trend(fast: Optional[float], slow: Optional[float]) -> str:
    """
    UP if fast > slow, DOWN if fast < slow.
    NEUTRAL when either EMA is not ready yet or they are exactly equal.
    """
    if fast is None or slow is None:
        return NEUTRAL
    if fast > slow:
        return UP
    if fast < slow:
        return DOWN
    return NEUTRAL


# ─────────────────────────────────────────────
# CANDLE WINDOW
# ─────────────────────────────────────────────

class CandleWindow:
    """
    Rolling deque of the most recent `capacity` candles.
    The oldest candle drops out automatically once capacity is exceeded.
    """

    def __init__(self, capacity: int, candles: Iterable[Candle] = ()):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._candles: deque[Candle] = deque(candles, maxlen=capacity)

    def append(self, candle: Candle) -> None:
        self._candles.append(candle)

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    def __getitem__(self, idx: int) -> Candle:
        return self._candles[idx]

    @property
    def last_price(self) -> Optional[float]:
        return self._candles[-1].price if self._candles else None

    def ema_pair(self, fast: int, slow: int) -> Tuple[Optional[float], Optional[float]]:
        candles = list(self._candles)
        return compute_ema(candles, fast), compute_ema(candles, slow)
