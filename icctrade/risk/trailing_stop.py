"""Trailing stop: percentage ratchet for an open position.

Rules:
  - Long: stop follows ``price × (1 − trail)`` but never moves down.
  - Short: stop follows ``price × (1 + trail)`` but never moves up.
"""

from icctrade.strategy.models import LONG, SHORT


class TrailingStop:
    """Tracks the stop for a single position.

    Args:
        initial_sl: Fixed stop set at entry.
        direction: ``"long"`` or ``"short"``.
        trail_pct: Distance kept behind the price, as a fraction.
    """

    def __init__(self, initial_sl: float, direction: str, trail_pct: float) -> None:
        if direction not in (LONG, SHORT):
            raise ValueError(f"direction must be 'long' or 'short', got {direction!r}")
        self.initial_sl = initial_sl
        self.direction = direction
        self.trail_pct = trail_pct
        self.current_sl = initial_sl

    def update(self, current_price: float) -> float | None:
        """Ratchet the stop toward *current_price*.

        Returns:
            New stop price if it moved, ``None`` if no change.
        """
        if self.direction == LONG:
            candidate = current_price * (1 - self.trail_pct)
            if candidate > self.current_sl:
                self.current_sl = candidate
                return candidate
        else:
            candidate = current_price * (1 + self.trail_pct)
            if candidate < self.current_sl:
                self.current_sl = candidate
                return candidate
        return None

    @property
    def active_stop(self) -> float:
        """The more protective of the initial and trailing stops."""
        if self.direction == LONG:
            return max(self.initial_sl, self.current_sl)
        return min(self.initial_sl, self.current_sl)

    def is_hit(self, price: float) -> bool:
        """``True`` when *price* has crossed the active stop adversely."""
        if self.direction == LONG:
            return price <= self.active_stop
        return price >= self.active_stop
