"""Candle aggregation: folds raw ticks into fixed-interval OHLC bars."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from icctrade.strategy.models import CandleData

logger = logging.getLogger("icctrade.candles")


class CandleAggregator:
    """Builds OHLC bars from ticks and keeps a bounded bar history.

    ``ingest`` adds a tick to the bar in progress; ``flush`` closes it.  The
    caller decides when an interval has elapsed.

    Args:
        max_candles: Maximum number of completed bars kept (oldest evicted).
    """

    def __init__(self, max_candles: int = 100) -> None:
        self._max_candles = max_candles
        self._candles: list[CandleData] = []
        self._pending: list[float] = []

    @property
    def candles(self) -> list[CandleData]:
        """Completed bars, oldest first."""
        return list(self._candles)

    @property
    def pending_ticks(self) -> int:
        """Number of ticks in the bar in progress."""
        return len(self._pending)

    def ingest(self, price: float, timestamp: Optional[datetime] = None) -> None:
        """Append a tick price to the bar in progress."""
        self._pending.append(price)

    def flush(self, timestamp: datetime) -> Optional[CandleData]:
        """Close the bar in progress and start a new one.

        Returns the completed candle, or ``None`` when no ticks arrived
        during the interval.
        """
        if not self._pending:
            return None
        candle = CandleData(
            time=timestamp,
            open=self._pending[0],
            high=max(self._pending),
            low=min(self._pending),
            close=self._pending[-1],
        )
        self._pending = []
        self._append(candle)
        logger.debug(
            "Candle closed O:%.4f H:%.4f L:%.4f C:%.4f",
            candle.open, candle.high, candle.low, candle.close,
        )
        return candle

    def seed(self, candles: Iterable[CandleData]) -> None:
        """Preload completed bars, e.g. history fetched at startup."""
        for candle in candles:
            self._append(candle)

    def _append(self, candle: CandleData) -> None:
        self._candles.append(candle)
        if len(self._candles) > self._max_candles:
            del self._candles[0]
