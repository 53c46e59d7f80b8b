"""Dual-average tick momentum strategy.

No phases: every tick compares a short and a long trailing average of raw
tick prices and signals when their relative gap exceeds a threshold.
"""

import logging
from datetime import datetime
from typing import Optional

from icctrade.strategy.models import LONG, SHORT, EntrySignal
from icctrade.strategy.sr_zones import LevelTracker

logger = logging.getLogger("icctrade.strategy.momentum")


def calculate_momentum(prices: list[float], short_window: int, long_window: int) -> float:
    """Relative gap between the short and long trailing averages.

    Returns 0.0 when fewer than *long_window* prices are available.
    """
    if len(prices) < long_window:
        return 0.0
    short_avg = sum(prices[-short_window:]) / short_window
    long_avg = sum(prices[-long_window:]) / long_window
    return (short_avg - long_avg) / long_avg


class MomentumStrategy:
    """Signals long on positive momentum, short on negative.

    Implements ``StrategyProtocol``.

    Args:
        short_window: Ticks in the short average.
        long_window: Ticks in the long average (must exceed *short_window*).
        threshold: Minimum absolute momentum for a signal.
        max_ticks: Size of the trailing tick window.
    """

    name = "momentum"
    uses_levels = False

    def __init__(
        self,
        short_window: int = 5,
        long_window: int = 20,
        threshold: float = 0.00005,
        max_ticks: int = 100,
    ) -> None:
        if long_window <= short_window:
            raise ValueError("long_window must be greater than short_window")
        if max_ticks < long_window:
            raise ValueError("max_ticks must be at least long_window")
        self._short_window = short_window
        self._long_window = long_window
        self._threshold = threshold
        self._max_ticks = max_ticks
        self._prices: list[float] = []
        self.last_insight: dict = {}

    @classmethod
    def from_config(cls, config) -> "MomentumStrategy":
        return cls(
            short_window=config.momentum_short_window,
            long_window=config.momentum_long_window,
            threshold=config.momentum_threshold,
            max_ticks=config.tick_window,
        )

    @property
    def phase(self) -> str:
        if len(self._prices) < self._long_window:
            return "WARMING_UP"
        return "SCANNING"

    @property
    def prices(self) -> list[float]:
        return list(self._prices)

    def observe(self, price: float, timestamp: datetime) -> None:
        self._prices.append(price)
        if len(self._prices) > self._max_ticks:
            del self._prices[0]

    def evaluate(
        self,
        price: float,
        timestamp: datetime,
        levels: LevelTracker,
    ) -> Optional[EntrySignal]:
        if len(self._prices) < self._long_window:
            return None

        momentum = calculate_momentum(self._prices, self._short_window, self._long_window)
        self.last_insight = {"momentum": momentum}

        if momentum > self._threshold:
            direction = LONG
        elif momentum < -self._threshold:
            direction = SHORT
        else:
            return None

        logger.info("Momentum %+.6f: signalling %s", momentum, direction)
        return EntrySignal(
            direction=direction,
            price=price,
            time=timestamp,
            reason=f"momentum {momentum:+.6f}",
        )

    def reset(self) -> None:
        """Momentum keeps no setup; the tick window is preserved."""
