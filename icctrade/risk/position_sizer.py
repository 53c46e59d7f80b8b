"""Position sizing policies: pure math, no I/O.

A sizing policy is any callable ``size(capital, price) -> quantity``.
"""

from typing import Callable

SizingPolicy = Callable[[float, float], float]


def budget_fraction(fraction: float) -> SizingPolicy:
    """Spend *fraction* of the available capital on each entry.

    Formula::

        quantity = capital × fraction / price

    Raises:
        ValueError: If *fraction* is not in ``(0, 1]``.
    """
    if not 0 < fraction <= 1:
        raise ValueError(f"fraction must be in (0, 1], got {fraction}")

    def size(capital: float, price: float) -> float:
        if price <= 0:
            raise ValueError(f"price must be positive, got {price}")
        if capital <= 0:
            return 0.0
        return capital * fraction / price

    return size


def fixed_quantity(quantity: float) -> SizingPolicy:
    """Trade the same *quantity* regardless of capital or price."""
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")

    def size(capital: float, price: float) -> float:
        return quantity

    return size


def sizer_from_config(config) -> SizingPolicy:
    """Build the sizing policy named by ``config.sizing_rule``."""
    if config.sizing_rule == "fixed":
        return fixed_quantity(config.fixed_quantity)
    return budget_fraction(config.position_size_pct)
