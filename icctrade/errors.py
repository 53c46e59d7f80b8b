"""Error kinds raised by the engine and its collaborators.

Per-cycle errors (feed, price, order) are recoverable: the engine logs them
and carries on with the next tick.  Configuration errors are fatal at startup.
"""

import math


class FeedUnavailable(RuntimeError):
    """No tick or candle data could be obtained this cycle."""


class InvalidPrice(ValueError):
    """A tick price was non-numeric, non-finite, or not positive."""


class OrderExecutionFailed(RuntimeError):
    """The exchange rejected or failed to fill a market order."""


class ConfigurationError(ValueError):
    """A configuration field is missing or invalid."""


ConfigurationInvalid = ConfigurationError


def validate_price(value) -> float:
    """Return *value* as a positive finite float.

    Raises:
        InvalidPrice: If the value cannot be parsed or is not positive.
    """
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidPrice(f"unparsable price {value!r}") from exc
    if not math.isfinite(price) or price <= 0:
        raise InvalidPrice(f"price must be positive and finite, got {value!r}")
    return price
