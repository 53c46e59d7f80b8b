"""Position lifecycle: open, trail, evaluate exits, close.

Owns at most one open position.  Pure bookkeeping: order execution is the
engine's concern, the manager only sees fill prices.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from icctrade.risk.models import (
    PROFIT,
    STOP_LOSS,
    TIME_LIMIT,
    Position,
    TradeRecord,
)
from icctrade.risk.trailing_stop import TrailingStop
from icctrade.strategy.models import LONG, SHORT

logger = logging.getLogger("icctrade.positions")


class PositionManager:
    """Manages the single open position.

    Args:
        stop_loss_pct: Initial stop distance from entry, as a fraction.
        trailing_stop_pct: Trailing distance behind price, as a fraction.
        profit_target_pct: Unrealized return that triggers a PROFIT exit.
        max_holding: Holding period after which a TIME_LIMIT exit fires.
        fee_rate: Fee charged on entry plus exit notional.
        slippage_rate: Slippage charged on entry plus exit notional.
    """

    def __init__(
        self,
        stop_loss_pct: float,
        trailing_stop_pct: float,
        profit_target_pct: float,
        max_holding: timedelta,
        fee_rate: float = 0.001,
        slippage_rate: float = 0.0,
    ) -> None:
        self._stop_loss_pct = stop_loss_pct
        self._trailing_stop_pct = trailing_stop_pct
        self._profit_target_pct = profit_target_pct
        self._max_holding = max_holding
        self._fee_rate = fee_rate
        self._slippage_rate = slippage_rate
        self._position: Optional[Position] = None

    @classmethod
    def from_config(cls, config) -> "PositionManager":
        return cls(
            stop_loss_pct=config.stop_loss,
            trailing_stop_pct=config.trailing_stop,
            profit_target_pct=config.profit_target,
            max_holding=timedelta(minutes=config.max_holding_minutes),
            fee_rate=config.fee_rate,
            slippage_rate=config.slippage_rate,
        )

    @property
    def position(self) -> Optional[Position]:
        return self._position

    @property
    def has_position(self) -> bool:
        return self._position is not None

    # ── Open ─────────────────────────────────────────────────────────────

    def open(
        self,
        direction: str,
        price: float,
        time: datetime,
        quantity: float,
    ) -> Optional[Position]:
        """Open a position at *price*.

        Returns the new ``Position``, or ``None`` when rejected because a
        position already exists or price/quantity is not positive.
        """
        if direction not in (LONG, SHORT):
            raise ValueError(f"direction must be 'long' or 'short', got {direction!r}")
        if self._position is not None:
            logger.warning("Already in a position, skipping %s entry", direction)
            return None
        if price <= 0 or quantity <= 0:
            logger.warning(
                "Rejected %s entry: price=%s quantity=%s", direction, price, quantity,
            )
            return None

        if direction == LONG:
            initial_sl = price * (1 - self._stop_loss_pct)
        else:
            initial_sl = price * (1 + self._stop_loss_pct)

        self._position = Position(
            direction=direction,
            entry_price=price,
            entry_time=time,
            quantity=quantity,
            stop=TrailingStop(initial_sl, direction, self._trailing_stop_pct),
        )
        logger.info(
            "Opened %s %.6f @ %.4f, stop %.4f",
            direction, quantity, price, initial_sl,
        )
        return self._position

    # ── Per-tick evaluation ──────────────────────────────────────────────

    def evaluate(self, price: float, time: datetime) -> Optional[str]:
        """Ratchet the trailing stop and check exit triggers.

        Returns the close reason (``PROFIT``, ``STOP_LOSS`` or
        ``TIME_LIMIT``, checked in that order) or ``None``.
        """
        position = self._position
        if position is None:
            return None

        position.stop.update(price)

        pnl = position.unrealized_pnl(price)
        pnl_ratio = pnl / position.notional

        if pnl_ratio >= self._profit_target_pct:
            logger.info("Profit target hit: %.2f (%.2f%%)", pnl, pnl_ratio * 100)
            return PROFIT
        if position.stop.is_hit(price):
            logger.warning("Stop loss hit: %.2f (%.2f%%)", pnl, pnl_ratio * 100)
            return STOP_LOSS
        if time - position.entry_time >= self._max_holding:
            logger.warning("Time limit reached: %.2f", pnl)
            return TIME_LIMIT
        return None

    # ── Close ────────────────────────────────────────────────────────────

    def close(self, price: float, time: datetime, reason: str) -> Optional[TradeRecord]:
        """Close the open position at *price* and return its trade record.

        Returns ``None`` when no position is open.
        """
        position = self._position
        if position is None:
            return None

        gross = position.unrealized_pnl(price)
        turnover = position.notional + price * position.quantity
        fees = turnover * self._fee_rate
        slippage = turnover * self._slippage_rate
        net = gross - fees - slippage

        record = TradeRecord(
            timestamp=time,
            direction=position.direction,
            entry_price=position.entry_price,
            exit_price=price,
            quantity=position.quantity,
            gross_pnl=gross,
            fees=fees,
            slippage=slippage,
            net_pnl=net,
            close_reason=reason,
            entry_time=position.entry_time,
        )
        self._position = None

        logger.info(
            "Closed %s (%s): %.4f -> %.4f gross %.2f fees %.2f slippage %.2f net %.2f",
            record.direction, reason, record.entry_price, price,
            gross, fees, slippage, net,
        )
        return record
