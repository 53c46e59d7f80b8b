"""ICCTrade: Trading engine (orchestration loop).

Connects candle aggregation, level tracking, strategy, position management
and the performance ledger into one tick-driven cycle.
Each tick runs to completion under a single lock before the next one starts.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from icctrade.config import Config
from icctrade.errors import (
    ConfigurationError,
    FeedUnavailable,
    InvalidPrice,
    OrderExecutionFailed,
    validate_price,
)
from icctrade.ledger import PerformanceLedger
from icctrade.market.candles import CandleAggregator
from icctrade.risk.models import MANUAL, TradeRecord
from icctrade.risk.position_manager import PositionManager
from icctrade.risk.position_sizer import SizingPolicy, sizer_from_config
from icctrade.strategy.base import StrategyProtocol
from icctrade.strategy.models import CandleData, EntrySignal
from icctrade.strategy.registry import get_strategy
from icctrade.strategy.sr_zones import LevelTracker

logger = logging.getLogger("icctrade.engine")


class TradingEngine:
    """Owns all mutable trading state and runs one cycle per tick.

    Args:
        config: Validated application configuration.
        strategy: A strategy implementing ``StrategyProtocol``.  Defaults to
                  the one named by ``config.strategy``.
        feed: Price source with ``fetch_price()`` (and optionally
              ``fetch_candles(limit=...)``).  Only needed by :meth:`run`.
        executor: Order executor whose ``open_order``/``close_order`` return
                  an ``OrderFill``.  ``None`` simulates fills at the tick price.
        trade_repo: Optional sink with ``insert_trade(record)``.
        sizer: Sizing policy ``(capital, price) -> quantity``.
    """

    def __init__(
        self,
        config: Config,
        strategy: Optional[StrategyProtocol] = None,
        feed=None,
        executor=None,
        trade_repo=None,
        sizer: Optional[SizingPolicy] = None,
    ) -> None:
        if config.trading_mode == "live" and executor is None:
            raise ConfigurationError("live trading requires an order executor")

        self._config = config
        self._strategy = strategy or get_strategy(config.strategy, config)
        self._feed = feed
        self._executor = executor
        self._trade_repo = trade_repo
        self._sizer = sizer or sizer_from_config(config)

        self._candles = CandleAggregator(config.max_candles)
        self._levels = LevelTracker(config.level_tolerance, config.max_levels)
        self._positions = PositionManager.from_config(config)
        self._ledger = PerformanceLedger(config.initial_capital, config.max_trade_log)

        self._lock = asyncio.Lock()
        self._running: bool = False
        self._cycle_count: int = 0
        self._last_price: Optional[float] = None
        self._last_tick_at: Optional[datetime] = None
        self._last_flush_at: Optional[datetime] = None

    # ── Accessors ────────────────────────────────────────────────────────

    @property
    def config(self) -> Config:
        return self._config

    @property
    def strategy(self) -> StrategyProtocol:
        return self._strategy

    @property
    def ledger(self) -> PerformanceLedger:
        return self._ledger

    @property
    def positions(self) -> PositionManager:
        return self._positions

    @property
    def levels(self) -> LevelTracker:
        return self._levels

    @property
    def candles(self) -> CandleAggregator:
        return self._candles

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_price(self) -> Optional[float]:
        return self._last_price

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Seed the candle history from the feed, if it offers one."""
        fetch_candles = getattr(self._feed, "fetch_candles", None)
        if fetch_candles is not None:
            try:
                history = await fetch_candles(limit=self._config.max_candles)
                self.seed_candles(history)
                logger.info("Loaded %d historical candles", len(history))
            except FeedUnavailable as exc:
                logger.error("Failed to load candle history: %s", exc)
        self._running = True

    def stop(self) -> None:
        """Signal the run loop to stop; it drains after the current cycle."""
        self._running = False

    async def drain(self) -> Optional[dict]:
        """Close any open position with reason MANUAL and stop."""
        self._running = False
        if not self._positions.has_position:
            return None
        logger.warning("Closing open position before shutdown...")
        return await self.close_position(MANUAL)

    # ── Candles and levels ───────────────────────────────────────────────

    def seed_candles(self, candles: Iterable[CandleData]) -> None:
        """Preload completed candles and rebuild levels from them."""
        self._candles.seed(candles)
        if self._strategy.uses_levels:
            self._rebuild_levels()

    async def flush_candles(self, timestamp: datetime) -> Optional[CandleData]:
        """Close the bar in progress; rebuild levels when a bar was produced."""
        async with self._lock:
            self._last_flush_at = timestamp
            candle = self._candles.flush(timestamp)
            if candle is not None and self._strategy.uses_levels:
                self._rebuild_levels()
            return candle

    def flush_due(self, now: datetime) -> bool:
        """``True`` when a candle interval has elapsed since the last flush."""
        if self._last_flush_at is None:
            self._last_flush_at = now
            return False
        interval = timedelta(seconds=self._config.candle_interval_seconds)
        return now - self._last_flush_at >= interval

    def _rebuild_levels(self) -> None:
        self._levels.rebuild_from_candles(
            self._candles.candles, self._config.swing_radius,
        )
        logger.debug(
            "Levels rebuilt: resistance=%s support=%s",
            [lv.price for lv in self._levels.resistance],
            [lv.price for lv in self._levels.support],
        )

    # ── Single cycle ─────────────────────────────────────────────────────

    async def on_tick(self, price, timestamp: Optional[datetime] = None) -> dict:
        """Run one evaluation cycle for a tick.

        Returns a dict describing the action taken:

        - ``{"action": "dropped", ...}``: invalid price, no state change
        - ``{"action": "waiting", "phase": ...}``: flat, no signal
        - ``{"action": "opened", ...}`` / ``{"action": "signal_rejected", ...}``
        - ``{"action": "holding", ...}`` / ``{"action": "closed", ...}``
        - ``{"action": "order_failed", ...}``: live order rejected

        Args:
            price: Tick price.
            timestamp: Tick time.  Defaults to ``datetime.now(UTC)``.
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        try:
            price = validate_price(price)
        except InvalidPrice as exc:
            logger.warning("Dropped tick: %s", exc)
            return {"action": "dropped", "reason": str(exc)}

        async with self._lock:
            return await self._cycle(price, timestamp)

    async def _cycle(self, price: float, timestamp: datetime) -> dict:
        self._cycle_count += 1
        self._last_price = price
        self._last_tick_at = timestamp
        self._candles.ingest(price, timestamp)
        self._strategy.observe(price, timestamp)

        # 1 ── Manage the open position
        if self._positions.has_position:
            reason = self._positions.evaluate(price, timestamp)
            if reason is None:
                position = self._positions.position
                return {
                    "action": "holding",
                    "unrealized_pnl": position.unrealized_pnl(price),
                    "stop": position.stop.active_stop,
                }
            return await self._close(price, timestamp, reason)

        # 2 ── Look for an entry
        signal = self._strategy.evaluate(price, timestamp, self._levels)
        if signal is None:
            return {"action": "waiting", "phase": self._strategy.phase}

        # The setup is consumed whether or not the entry succeeds
        self._strategy.reset()
        return await self._open(signal, price, timestamp)

    async def _open(self, signal: EntrySignal, price: float, timestamp: datetime) -> dict:
        try:
            capital = await self._available_capital()
        except FeedUnavailable as exc:
            logger.warning("Balance unavailable, skipping %s entry: %s", signal.direction, exc)
            return {"action": "signal_rejected", "reason": "balance_unavailable"}
        quantity = self._sizer(capital, price)
        if quantity <= 0:
            logger.warning("No capital available for %s entry", signal.direction)
            return {"action": "signal_rejected", "reason": "no_capital"}

        fill_price = price
        if self._executor is not None:
            try:
                fill = await self._executor.open_order(signal.direction, quantity)
            except OrderExecutionFailed as exc:
                logger.error("Entry order failed, staying flat: %s", exc)
                return {"action": "order_failed", "side": "open", "reason": str(exc)}
            # Record what the exchange filled, not what was requested
            fill_price, quantity = fill.price, fill.quantity

        position = self._positions.open(signal.direction, fill_price, timestamp, quantity)
        if position is None:
            return {"action": "signal_rejected", "reason": "position_rejected"}

        return {
            "action": "opened",
            "direction": position.direction,
            "price": position.entry_price,
            "quantity": position.quantity,
            "stop_loss": position.initial_stop_loss,
            "reason": signal.reason,
        }

    async def _close(self, price: float, timestamp: datetime, reason: str) -> dict:
        position = self._positions.position
        fill_price = price
        if self._executor is not None:
            try:
                fill = await self._executor.close_order(
                    position.direction, position.quantity,
                )
            except OrderExecutionFailed as exc:
                logger.error("Exit order failed, position kept open: %s", exc)
                return {"action": "order_failed", "side": "close", "reason": str(exc)}
            fill_price = fill.price

        record = self._positions.close(fill_price, timestamp, reason)
        self._ledger.record(record)
        self._persist(record)
        return {
            "action": "closed",
            "reason": reason,
            "net_pnl": record.net_pnl,
            "trade": record.to_dict(),
        }

    async def _available_capital(self) -> float:
        fetch_free_balance = getattr(self._executor, "fetch_free_balance", None)
        if self._config.trading_mode == "live" and fetch_free_balance is not None:
            return await fetch_free_balance()
        return self._ledger.balance

    def _persist(self, record: TradeRecord) -> None:
        if self._trade_repo is None:
            return
        try:
            self._trade_repo.insert_trade(record)
        except sqlite3.Error as exc:
            logger.error("Failed to persist trade: %s", exc)

    # ── Manual close ─────────────────────────────────────────────────────

    async def close_position(self, reason: str = MANUAL) -> Optional[dict]:
        """Close the open position at the last seen price.

        Returns the cycle result dict, or ``None`` when flat.
        """
        async with self._lock:
            if not self._positions.has_position or self._last_price is None:
                return None
            timestamp = self._last_tick_at or datetime.now(timezone.utc)
            return await self._close(self._last_price, timestamp, reason)

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: float | None = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Poll the feed and run cycles until stopped, then drain.

        Args:
            poll_interval: Seconds between ticks.  Defaults to config.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        if self._feed is None:
            raise RuntimeError("run() needs a price feed")
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds

        self._running = True
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            try:
                price = await self._feed.fetch_price()
                result = await self.on_tick(price, datetime.now(timezone.utc))
                results.append(result)
                logger.debug("Cycle %d: %s", cycle, result.get("action", "unknown"))
            except FeedUnavailable as exc:
                logger.warning("Cycle %d: feed unavailable (%s)", cycle, exc)
                results.append({"action": "skipped", "reason": "feed_unavailable"})
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)
                results.append({"action": "error", "reason": str(exc)})

            now = datetime.now(timezone.utc)
            if self.flush_due(now):
                await self.flush_candles(now)

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep, checks _running every second
            remaining = poll_interval
            while remaining > 0 and self._running:
                step = min(1.0, remaining)
                await asyncio.sleep(step)
                remaining -= step

        await self.drain()
        logger.info("Engine stopped after %d cycle(s)", cycle)
        return results

    # ── Status ───────────────────────────────────────────────────────────

    def status(self) -> dict:
        """JSON-serialisable snapshot of the engine state."""
        price = self._last_price
        position = self._positions.position
        resistance = support = None
        if price is not None:
            resistance = self._levels.nearest_resistance_above(price)
            support = self._levels.nearest_support_below(price)
        return {
            "mode": self._config.trading_mode,
            "symbol": self._config.symbol,
            "strategy": self._strategy.name,
            "running": self._running,
            "phase": self._strategy.phase,
            "price": price,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "cycle_count": self._cycle_count,
            "candles": len(self._candles.candles),
            "nearest_resistance": resistance.price if resistance else None,
            "nearest_support": support.price if support else None,
            "position": position.to_dict(price) if position else None,
            "performance": self._ledger.summary(),
        }
