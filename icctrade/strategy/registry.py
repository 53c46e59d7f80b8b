"""Strategy registry: maps strategy names to classes.

Used by the CLI to instantiate the configured strategy.
"""

from icctrade.strategy.base import StrategyProtocol
from icctrade.strategy.icc import ICCStrategy
from icctrade.strategy.momentum import MomentumStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "icc": ICCStrategy,
    "momentum": MomentumStrategy,
}


def get_strategy(name: str, config) -> StrategyProtocol:
    """Look up and build a strategy by registry key from *config*.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name].from_config(config)
