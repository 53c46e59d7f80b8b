"""Strategy data models: typed representations for strategy inputs and outputs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# ── Directions and phases ────────────────────────────────────────────────

LONG = "long"
SHORT = "short"

BULLISH = "bullish"
BEARISH = "bearish"

WAITING = "WAITING"
INDICATION_DETECTED = "INDICATION_DETECTED"
CORRECTION_IN_PROGRESS = "CORRECTION_IN_PROGRESS"
CONTINUATION_CONFIRMED = "CONTINUATION_CONFIRMED"

ICC_PHASES = (
    WAITING,
    INDICATION_DETECTED,
    CORRECTION_IN_PROGRESS,
    CONTINUATION_CONFIRMED,
)


@dataclass(frozen=True)
class CandleData:
    """A single OHLC bar."""

    time: datetime
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class SwingPoint:
    """A local extremum found in the candle history."""

    price: float
    index: int
    time: datetime


@dataclass(frozen=True)
class Level:
    """A support or resistance price level."""

    price: float
    strength: int  # number of swing points merged into the level
    last_touch: datetime


@dataclass
class ICCSetup:
    """A breakout setup moving through the ICC phases."""

    direction: str  # "bullish" or "bearish"
    broken_level: float
    indication_price: float
    indication_time: datetime
    correction_started: bool = False
    correction_time: Optional[datetime] = None
    continuation_price: Optional[float] = None
    continuation_time: Optional[datetime] = None

    def retest_band(self, tolerance: float) -> tuple[float, float]:
        """Return the ``(lower, upper)`` retest band around the broken level."""
        return (
            self.broken_level * (1 - tolerance),
            self.broken_level * (1 + tolerance),
        )


@dataclass(frozen=True)
class EntrySignal:
    """A trade entry signal produced by a strategy."""

    direction: str  # "long" or "short"
    price: float
    time: datetime
    reason: str
