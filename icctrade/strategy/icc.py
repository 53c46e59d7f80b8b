"""Indication → Correction → Continuation breakout strategy.

Waits for price to break a support/resistance level (indication), come back
to retest it (correction), then push beyond the breakout price
(continuation).  Exactly one phase handler runs per tick.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from icctrade.strategy.models import (
    BEARISH,
    BULLISH,
    CONTINUATION_CONFIRMED,
    CORRECTION_IN_PROGRESS,
    INDICATION_DETECTED,
    LONG,
    SHORT,
    WAITING,
    EntrySignal,
    ICCSetup,
)
from icctrade.strategy.sr_zones import LevelTracker

logger = logging.getLogger("icctrade.strategy.icc")


class ICCStrategy:
    """Phase machine for the ICC pattern.

    Implements ``StrategyProtocol``.

    Args:
        break_threshold: Fraction beyond a level that counts as a break.
        retest_tolerance: Half-width of the retest band around the broken level.
        confirm_threshold: Fraction beyond the indication price that confirms
            continuation.
        setup_timeout: Maximum age of an unretested indication.
    """

    name = "icc"
    uses_levels = True

    def __init__(
        self,
        break_threshold: float = 0.002,
        retest_tolerance: float = 0.01,
        confirm_threshold: float = 0.003,
        setup_timeout: timedelta = timedelta(hours=2),
    ) -> None:
        self._break_threshold = break_threshold
        self._retest_tolerance = retest_tolerance
        self._confirm_threshold = confirm_threshold
        self._setup_timeout = setup_timeout
        self._phase = WAITING
        self._setup: Optional[ICCSetup] = None
        self._previous_price: Optional[float] = None
        self._last_price: Optional[float] = None
        self.last_insight: dict = {}

    @classmethod
    def from_config(cls, config) -> "ICCStrategy":
        return cls(
            break_threshold=config.break_threshold,
            retest_tolerance=config.retest_tolerance,
            confirm_threshold=config.confirm_threshold,
            setup_timeout=timedelta(minutes=config.setup_timeout_minutes),
        )

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def setup(self) -> Optional[ICCSetup]:
        return self._setup

    # ── Protocol ─────────────────────────────────────────────────────────

    def observe(self, price: float, timestamp: datetime) -> None:
        self._previous_price = self._last_price
        self._last_price = price

    def evaluate(
        self,
        price: float,
        timestamp: datetime,
        levels: LevelTracker,
    ) -> Optional[EntrySignal]:
        """Run the handler for the current phase.

        Returns an ``EntrySignal`` when continuation is confirmed.  The phase
        stays ``CONTINUATION_CONFIRMED`` until the caller calls ``reset``.
        """
        if self._phase == WAITING:
            self._detect_indication(price, timestamp, levels)
        elif self._phase == INDICATION_DETECTED:
            self._detect_correction(price, timestamp)
        elif self._phase == CORRECTION_IN_PROGRESS:
            return self._detect_continuation(price, timestamp)
        elif self._phase == CONTINUATION_CONFIRMED:
            return self._signal()
        return None

    def reset(self) -> None:
        self._phase = WAITING
        self._setup = None

    # ── Phase handlers ───────────────────────────────────────────────────

    def _detect_indication(
        self, price: float, timestamp: datetime, levels: LevelTracker,
    ) -> None:
        if self._previous_price is None:
            return

        resistance = levels.broken_resistance(
            self._previous_price, price, self._break_threshold,
        )
        if resistance is not None:
            self._start_setup(BULLISH, resistance.price, price, timestamp)
            return

        support = levels.broken_support(
            self._previous_price, price, self._break_threshold,
        )
        if support is not None:
            self._start_setup(BEARISH, support.price, price, timestamp)

    def _start_setup(
        self, direction: str, level: float, price: float, timestamp: datetime,
    ) -> None:
        self._setup = ICCSetup(
            direction=direction,
            broken_level=level,
            indication_price=price,
            indication_time=timestamp,
        )
        self._phase = INDICATION_DETECTED
        kind = "resistance" if direction == BULLISH else "support"
        logger.info(
            "ICC indication (%s): %s %.4f broken at %.4f",
            direction, kind, level, price,
        )
        self.last_insight = {"phase": self._phase, "setup": direction, "level": level}

    def _detect_correction(self, price: float, timestamp: datetime) -> None:
        setup = self._setup
        if setup is None:
            self.reset()
            return

        if timestamp - setup.indication_time > self._setup_timeout:
            logger.warning("ICC setup timed out waiting for a retest")
            self.reset()
            return

        lower, upper = setup.retest_band(self._retest_tolerance)
        if lower <= price <= upper:
            setup.correction_started = True
            setup.correction_time = timestamp
            self._phase = CORRECTION_IN_PROGRESS
            logger.info("ICC correction: price retesting %.4f", setup.broken_level)
        elif self._broke_back(setup, price, lower, upper):
            logger.warning("ICC setup invalidated: price broke back through %.4f",
                           setup.broken_level)
            self.reset()

    def _detect_continuation(
        self, price: float, timestamp: datetime,
    ) -> Optional[EntrySignal]:
        setup = self._setup
        if setup is None or not setup.correction_started:
            self.reset()
            return None

        if setup.direction == BULLISH:
            confirmed = price > setup.indication_price * (1 + self._confirm_threshold)
        else:
            confirmed = price < setup.indication_price * (1 - self._confirm_threshold)

        if confirmed:
            setup.continuation_price = price
            setup.continuation_time = timestamp
            self._phase = CONTINUATION_CONFIRMED
            logger.info("ICC continuation (%s) confirmed at %.4f", setup.direction, price)
            return self._signal()

        lower, upper = setup.retest_band(self._retest_tolerance)
        if self._broke_back(setup, price, lower, upper):
            logger.warning("ICC setup failed: no continuation")
            self.reset()
        return None

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _broke_back(setup: ICCSetup, price: float, lower: float, upper: float) -> bool:
        if setup.direction == BULLISH:
            return price < lower
        return price > upper

    def _signal(self) -> Optional[EntrySignal]:
        setup = self._setup
        if setup is None or setup.continuation_price is None:
            self.reset()
            return None
        direction = LONG if setup.direction == BULLISH else SHORT
        self.last_insight = {"phase": self._phase, "signal": direction}
        return EntrySignal(
            direction=direction,
            price=setup.continuation_price,
            time=setup.continuation_time,
            reason=(
                f"ICC {setup.direction} continuation after break of "
                f"{setup.broken_level:.4f}"
            ),
        )
