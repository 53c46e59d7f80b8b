"""Swing detection and support/resistance level tracking: pure functions plus
a small holder for the most recently rebuilt levels."""

from dataclasses import replace
from typing import Optional, Sequence

from icctrade.strategy.models import CandleData, Level, SwingPoint


def find_swing_highs(candles: Sequence[CandleData], radius: int = 5) -> list[SwingPoint]:
    """Identify swing highs.

    A swing high is a candle whose high is strictly higher than the highs of
    the *radius* candles on each side.  Equal highs disqualify it.
    """
    swings: list[SwingPoint] = []
    if len(candles) < 2 * radius + 1:
        return swings
    for i in range(radius, len(candles) - radius):
        high = candles[i].high
        is_swing = True
        for j in range(1, radius + 1):
            if candles[i - j].high >= high or candles[i + j].high >= high:
                is_swing = False
                break
        if is_swing:
            swings.append(SwingPoint(price=high, index=i, time=candles[i].time))
    return swings


def find_swing_lows(candles: Sequence[CandleData], radius: int = 5) -> list[SwingPoint]:
    """Identify swing lows.

    A swing low is a candle whose low is strictly lower than the lows of the
    *radius* candles on each side.  Equal lows disqualify it.
    """
    swings: list[SwingPoint] = []
    if len(candles) < 2 * radius + 1:
        return swings
    for i in range(radius, len(candles) - radius):
        low = candles[i].low
        is_swing = True
        for j in range(1, radius + 1):
            if candles[i - j].low <= low or candles[i + j].low <= low:
                is_swing = False
                break
        if is_swing:
            swings.append(SwingPoint(price=low, index=i, time=candles[i].time))
    return swings


def cluster_levels(
    swings: Sequence[SwingPoint],
    tolerance: float = 0.005,
    max_levels: int = 3,
) -> list[Level]:
    """Cluster swing points into levels ranked by strength.

    Each swing merges into the first existing level within a relative
    distance of *tolerance*; merging bumps the strength and the last-touch
    time.  Otherwise the swing starts a new level.  The result is sorted by
    strength (descending, stable) and truncated to *max_levels*.
    """
    levels: list[Level] = []
    for swing in swings:
        for k, level in enumerate(levels):
            if abs(swing.price - level.price) / level.price < tolerance:
                levels[k] = replace(
                    level, strength=level.strength + 1, last_touch=swing.time,
                )
                break
        else:
            levels.append(Level(price=swing.price, strength=1, last_touch=swing.time))

    levels.sort(key=lambda lv: lv.strength, reverse=True)
    return levels[:max_levels]


class LevelTracker:
    """Holds the support and resistance levels from the last rebuild.

    Args:
        tolerance: Relative distance under which swings merge into a level.
        max_levels: Maximum levels kept per side.
    """

    def __init__(self, tolerance: float = 0.005, max_levels: int = 3) -> None:
        self._tolerance = tolerance
        self._max_levels = max_levels
        self._support: list[Level] = []
        self._resistance: list[Level] = []

    # ── Mutation ─────────────────────────────────────────────────────────

    def rebuild(
        self,
        swing_highs: Sequence[SwingPoint],
        swing_lows: Sequence[SwingPoint],
    ) -> None:
        """Replace both level lists from fresh swing points."""
        self._resistance = cluster_levels(swing_highs, self._tolerance, self._max_levels)
        self._support = cluster_levels(swing_lows, self._tolerance, self._max_levels)

    def rebuild_from_candles(self, candles: Sequence[CandleData], radius: int) -> None:
        """Detect swings in *candles* and rebuild from them."""
        self.rebuild(find_swing_highs(candles, radius), find_swing_lows(candles, radius))

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def resistance(self) -> list[Level]:
        return list(self._resistance)

    @property
    def support(self) -> list[Level]:
        return list(self._support)

    def nearest_resistance_above(self, price: float) -> Optional[Level]:
        """Lowest resistance level strictly above *price*, or ``None``."""
        above = [lv for lv in self._resistance if lv.price > price]
        return min(above, key=lambda lv: lv.price, default=None)

    def nearest_support_below(self, price: float) -> Optional[Level]:
        """Highest support level strictly below *price*, or ``None``."""
        below = [lv for lv in self._support if lv.price < price]
        return max(below, key=lambda lv: lv.price, default=None)

    def broken_resistance(
        self, previous_price: float, price: float, threshold: float,
    ) -> Optional[Level]:
        """Resistance level crossed upward between two consecutive prices.

        A level *L* is broken when ``previous_price <= L*(1+threshold) < price``.
        When several levels are crossed at once the highest one is returned.
        """
        crossed = [
            lv for lv in self._resistance
            if previous_price <= lv.price * (1 + threshold) < price
        ]
        return max(crossed, key=lambda lv: lv.price, default=None)

    def broken_support(
        self, previous_price: float, price: float, threshold: float,
    ) -> Optional[Level]:
        """Support level crossed downward between two consecutive prices.

        A level *L* is broken when ``previous_price >= L*(1-threshold) > price``.
        When several levels are crossed at once the lowest one is returned.
        """
        crossed = [
            lv for lv in self._support
            if previous_price >= lv.price * (1 - threshold) > price
        ]
        return min(crossed, key=lambda lv: lv.price, default=None)

    def snapshot(self) -> dict:
        """Levels as plain dicts for the status API."""
        return {
            "resistance": [
                {"price": lv.price, "strength": lv.strength} for lv in self._resistance
            ],
            "support": [
                {"price": lv.price, "strength": lv.strength} for lv in self._support
            ],
        }
