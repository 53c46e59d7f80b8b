"""Strategy protocol.

Defines the interface that every strategy variant must implement.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from icctrade.strategy.models import EntrySignal
from icctrade.strategy.sr_zones import LevelTracker


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all trading strategies must satisfy.

    The engine calls ``observe`` on every valid tick and ``evaluate`` only
    while no position is open.  After acting on a signal it calls ``reset``.
    """

    name: str
    uses_levels: bool
    last_insight: dict

    @property
    def phase(self) -> str:
        """Current state label, shown on the status API."""
        ...

    def observe(self, price: float, timestamp: datetime) -> None:
        """Record a tick."""
        ...

    def evaluate(
        self,
        price: float,
        timestamp: datetime,
        levels: LevelTracker,
    ) -> Optional[EntrySignal]:
        """Advance the strategy one step and return an entry signal or None."""
        ...

    def reset(self) -> None:
        """Discard any setup in progress."""
        ...
