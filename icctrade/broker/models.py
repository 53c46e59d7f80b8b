"""Broker data models: typed representations of Binance spot API objects."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Balance:
    """Free and locked amounts of one asset."""

    asset: str
    free: float
    locked: float


@dataclass(frozen=True)
class OrderFill:
    """A filled market order."""

    order_id: str
    symbol: str
    side: str  # "BUY" or "SELL"
    quantity: float
    price: float  # average fill price
    status: str
