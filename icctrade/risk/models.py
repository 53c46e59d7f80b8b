"""Position and trade models."""

from dataclasses import dataclass
from datetime import datetime

from icctrade.risk.trailing_stop import TrailingStop
from icctrade.strategy.models import LONG

# Close reasons
PROFIT = "PROFIT"
STOP_LOSS = "STOP_LOSS"
TIME_LIMIT = "TIME_LIMIT"
MANUAL = "MANUAL"


@dataclass
class Position:
    """The single open position."""

    direction: str  # "long" or "short"
    entry_price: float
    entry_time: datetime
    quantity: float
    stop: TrailingStop

    @property
    def sign(self) -> int:
        return 1 if self.direction == LONG else -1

    @property
    def initial_stop_loss(self) -> float:
        return self.stop.initial_sl

    @property
    def trailing_stop_value(self) -> float:
        return self.stop.current_sl

    @property
    def notional(self) -> float:
        return self.entry_price * self.quantity

    def unrealized_pnl(self, price: float) -> float:
        return (price - self.entry_price) * self.sign * self.quantity

    def to_dict(self, price: float | None = None) -> dict:
        data = {
            "direction": self.direction,
            "entry_price": self.entry_price,
            "entry_time": self.entry_time.isoformat(),
            "quantity": self.quantity,
            "initial_stop_loss": self.initial_stop_loss,
            "trailing_stop_value": self.trailing_stop_value,
        }
        if price is not None:
            pnl = self.unrealized_pnl(price)
            data["unrealized_pnl"] = pnl
            data["unrealized_pct"] = pnl / self.notional * 100.0
        return data


@dataclass(frozen=True)
class TradeRecord:
    """A closed trade with its fee-aware P&L."""

    timestamp: datetime  # exit time
    direction: str
    entry_price: float
    exit_price: float
    quantity: float
    gross_pnl: float
    fees: float
    slippage: float
    net_pnl: float
    close_reason: str
    entry_time: datetime

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "quantity": self.quantity,
            "gross_pnl": self.gross_pnl,
            "fees": self.fees,
            "slippage": self.slippage,
            "net_pnl": self.net_pnl,
            "close_reason": self.close_reason,
            "entry_time": self.entry_time.isoformat(),
        }
