"""ICCTrade: application configuration.

Loads .env variables into a typed, validated config object.
An invalid or incomplete configuration fails construction, so the process
never starts with a half-usable setup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from icctrade.errors import ConfigurationError


TRADING_MODES = ("paper", "live")
STRATEGIES = ("icc", "momentum")
SIZING_RULES = ("budget", "fixed")

# Candle intervals (seconds) with a matching exchange kline interval
KLINE_INTERVALS = {
    60: "1m",
    180: "3m",
    300: "5m",
    900: "15m",
    1800: "30m",
    3600: "1h",
    7200: "2h",
    14400: "4h",
    86400: "1d",
}

_LIVE_REQUIRED_VARS = [
    "BINANCE_API_KEY",
    "BINANCE_API_SECRET",
]

_POSITIVE_FIELDS = (
    "initial_capital",
    "position_size_pct",
    "fixed_quantity",
    "swing_radius",
    "break_threshold",
    "retest_tolerance",
    "confirm_threshold",
    "setup_timeout_minutes",
    "momentum_short_window",
    "momentum_long_window",
    "momentum_threshold",
    "tick_window",
    "profit_target",
    "stop_loss",
    "trailing_stop",
    "max_holding_minutes",
    "candle_interval_seconds",
    "poll_interval_seconds",
    "max_candles",
    "max_trade_log",
    "level_tolerance",
    "max_levels",
)


@dataclass(frozen=True)
class Config:
    """Typed configuration for one trading engine.

    Ratios are decimal fractions: ``break_threshold=0.002`` means 0.2 %.
    """

    trading_mode: str = "paper"  # "paper" or "live"
    strategy: str = "icc"  # "icc" or "momentum"
    symbol: str = "SOL/USDT"
    api_key: str = ""
    api_secret: str = ""
    testnet: bool = False

    # Capital and sizing
    initial_capital: float = 10.0
    sizing_rule: str = "budget"  # "budget" or "fixed"
    position_size_pct: float = 0.95
    fixed_quantity: float = 1.0

    # ICC thresholds
    swing_radius: int = 5
    break_threshold: float = 0.002
    retest_tolerance: float = 0.01
    confirm_threshold: float = 0.003
    setup_timeout_minutes: float = 120.0

    # Momentum thresholds
    momentum_short_window: int = 5
    momentum_long_window: int = 20
    momentum_threshold: float = 0.00005
    tick_window: int = 100

    # Risk
    profit_target: float = 0.025
    stop_loss: float = 0.0125
    trailing_stop: float = 0.0075
    max_holding_minutes: float = 1440.0
    fee_rate: float = 0.001
    slippage_rate: float = 0.0

    # Data
    candle_interval_seconds: int = 60
    poll_interval_seconds: float = 5.0
    max_candles: int = 100
    max_trade_log: int = 50
    level_tolerance: float = 0.005
    max_levels: int = 3

    # Runtime
    save_trade_log: bool = False
    db_path: str = "data/icctrade.db"
    log_level: str = "INFO"
    health_port: int = 8080

    def __post_init__(self) -> None:
        if self.trading_mode not in TRADING_MODES:
            raise ConfigurationError(
                f"trading_mode must be one of {TRADING_MODES}, "
                f"got {self.trading_mode!r}"
            )
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"strategy must be one of {STRATEGIES}, got {self.strategy!r}"
            )
        if self.sizing_rule not in SIZING_RULES:
            raise ConfigurationError(
                f"sizing_rule must be one of {SIZING_RULES}, "
                f"got {self.sizing_rule!r}"
            )
        if "/" not in self.symbol:
            raise ConfigurationError(
                f"symbol must look like BASE/QUOTE, got {self.symbol!r}"
            )
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.candle_interval_seconds not in KLINE_INTERVALS:
            raise ConfigurationError(
                f"candle_interval_seconds must be one of "
                f"{sorted(KLINE_INTERVALS)}, got {self.candle_interval_seconds}"
            )
        if self.fee_rate < 0:
            raise ConfigurationError(f"fee_rate must be >= 0, got {self.fee_rate}")
        if self.slippage_rate < 0:
            raise ConfigurationError(
                f"slippage_rate must be >= 0, got {self.slippage_rate}"
            )
        if self.momentum_long_window <= self.momentum_short_window:
            raise ConfigurationError(
                "momentum_long_window must be greater than momentum_short_window"
            )
        if self.tick_window < self.momentum_long_window:
            raise ConfigurationError(
                "tick_window must hold at least momentum_long_window ticks"
            )
        if self.trading_mode == "live" and not (self.api_key and self.api_secret):
            raise ConfigurationError("live trading requires api_key and api_secret")

    @property
    def base_asset(self) -> str:
        """Base currency of the pair, e.g. ``SOL`` for ``SOL/USDT``."""
        return self.symbol.split("/")[0]

    @property
    def quote_asset(self) -> str:
        """Quote currency of the pair, e.g. ``USDT`` for ``SOL/USDT``."""
        return self.symbol.split("/")[1]

    @property
    def market_symbol(self) -> str:
        """Exchange symbol without separator, e.g. ``SOLUSDT``."""
        return self.symbol.replace("/", "").upper()

    @property
    def exchange_base_url(self) -> str:
        """Return the Binance REST base URL for the configured network."""
        if self.testnet:
            return "https://testnet.binance.vision"
        return "https://api.binance.com"


# Environment variable → (field name, parser)
_ENV_FIELDS = {
    "TRADING_MODE": ("trading_mode", str),
    "STRATEGY": ("strategy", str),
    "TRADING_PAIR": ("symbol", str),
    "BINANCE_API_KEY": ("api_key", str),
    "BINANCE_API_SECRET": ("api_secret", str),
    "BINANCE_TESTNET": ("testnet", "bool"),
    "INITIAL_CAPITAL": ("initial_capital", float),
    "SIZING_RULE": ("sizing_rule", str),
    "POSITION_SIZE_PCT": ("position_size_pct", float),
    "FIXED_QUANTITY": ("fixed_quantity", float),
    "SWING_RADIUS": ("swing_radius", int),
    "BREAK_THRESHOLD": ("break_threshold", float),
    "RETEST_TOLERANCE": ("retest_tolerance", float),
    "CONFIRM_THRESHOLD": ("confirm_threshold", float),
    "SETUP_TIMEOUT_MINUTES": ("setup_timeout_minutes", float),
    "MOMENTUM_SHORT_WINDOW": ("momentum_short_window", int),
    "MOMENTUM_LONG_WINDOW": ("momentum_long_window", int),
    "MOMENTUM_THRESHOLD": ("momentum_threshold", float),
    "TICK_WINDOW": ("tick_window", int),
    "PROFIT_TARGET": ("profit_target", float),
    "STOP_LOSS": ("stop_loss", float),
    "TRAILING_STOP": ("trailing_stop", float),
    "MAX_HOLDING_MINUTES": ("max_holding_minutes", float),
    "FEE_RATE": ("fee_rate", float),
    "SLIPPAGE_RATE": ("slippage_rate", float),
    "CANDLE_INTERVAL_SECONDS": ("candle_interval_seconds", int),
    "POLL_INTERVAL_SECONDS": ("poll_interval_seconds", float),
    "MAX_CANDLES": ("max_candles", int),
    "MAX_TRADE_LOG": ("max_trade_log", int),
    "SAVE_TRADE_LOG": ("save_trade_log", "bool"),
    "DB_PATH": ("db_path", str),
    "LOG_LEVEL": ("log_level", str),
    "HEALTH_PORT": ("health_port", int),
}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Unset variables fall back to the ``Config`` defaults.

    Raises ``ConfigurationError`` naming the offending variable when a value
    cannot be parsed, when live mode is requested without API credentials,
    or when the resulting configuration fails validation.
    """
    load_dotenv(dotenv_path=env_path)

    values: dict = {}
    for var, (name, parser) in _ENV_FIELDS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            values[name] = _parse_bool(raw) if parser == "bool" else parser(raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid value for {var}: {raw!r}"
            ) from exc

    if values.get("trading_mode") == "live":
        missing = [v for v in _LIVE_REQUIRED_VARS if not os.environ.get(v)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    return Config(**values)
