"""Tests for icctrade.config: environment variable loading and validation."""

import pytest

from icctrade.config import Config, load_config, _ENV_FIELDS
from icctrade.errors import ConfigurationError, ConfigurationInvalid


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure ICCTrade env vars are cleared between tests."""
    for var in _ENV_FIELDS:
        monkeypatch.delenv(var, raising=False)


def _load(tmp_path):
    # Non-existent env_path so load_dotenv doesn't pick up a real .env file
    return load_config(env_path=str(tmp_path / "nonexistent.env"))


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = _load(tmp_path)
        assert cfg.trading_mode == "paper"
        assert cfg.strategy == "icc"
        assert cfg.symbol == "SOL/USDT"
        assert cfg.break_threshold == 0.002
        assert cfg.retest_tolerance == 0.01
        assert cfg.confirm_threshold == 0.003
        assert cfg.swing_radius == 5
        assert cfg.fee_rate == 0.001
        assert cfg.max_levels == 3
        assert cfg.db_path == "data/icctrade.db"
        assert cfg.health_port == 8080

    def test_overrides_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STRATEGY", "momentum")
        monkeypatch.setenv("TRADING_PAIR", "BTC/USDT")
        monkeypatch.setenv("MOMENTUM_THRESHOLD", "0.0001")
        monkeypatch.setenv("SWING_RADIUS", "3")
        monkeypatch.setenv("SAVE_TRADE_LOG", "true")
        cfg = _load(tmp_path)
        assert cfg.strategy == "momentum"
        assert cfg.symbol == "BTC/USDT"
        assert cfg.momentum_threshold == 0.0001
        assert cfg.swing_radius == 3
        assert cfg.save_trade_log is True

    def test_empty_value_falls_back_to_default(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STOP_LOSS", "")
        assert _load(tmp_path).stop_loss == 0.0125

    def test_unparsable_value_names_variable(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROFIT_TARGET", "lots")
        with pytest.raises(ConfigurationError, match="PROFIT_TARGET"):
            _load(tmp_path)

    def test_live_requires_credentials(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRADING_MODE", "live")
        monkeypatch.setenv("BINANCE_API_KEY", "key")
        with pytest.raises(ConfigurationError, match="BINANCE_API_SECRET"):
            _load(tmp_path)

    def test_live_with_credentials(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRADING_MODE", "live")
        monkeypatch.setenv("BINANCE_API_KEY", "key")
        monkeypatch.setenv("BINANCE_API_SECRET", "secret")
        monkeypatch.setenv("BINANCE_TESTNET", "1")
        cfg = _load(tmp_path)
        assert cfg.trading_mode == "live"
        assert cfg.exchange_base_url == "https://testnet.binance.vision"

    def test_invalid_value_fails_construction(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FEE_RATE", "-0.1")
        with pytest.raises(ConfigurationInvalid):
            _load(tmp_path)

    def test_unsupported_candle_interval_fails_construction(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CANDLE_INTERVAL_SECONDS", "120")
        with pytest.raises(ConfigurationInvalid, match="candle_interval_seconds"):
            _load(tmp_path)


class TestConfigValidation:
    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError, match="trading_mode"):
            Config(trading_mode="backtest")

    def test_unknown_strategy(self):
        with pytest.raises(ConfigurationError, match="strategy"):
            Config(strategy="scalper")

    def test_non_positive_threshold(self):
        with pytest.raises(ConfigurationError, match="break_threshold"):
            Config(break_threshold=0)

    def test_long_window_must_exceed_short(self):
        with pytest.raises(ConfigurationError, match="momentum_long_window"):
            Config(momentum_short_window=20, momentum_long_window=20)

    def test_tick_window_holds_long_window(self):
        with pytest.raises(ConfigurationError, match="tick_window"):
            Config(momentum_long_window=50, tick_window=40)

    def test_candle_interval_must_match_a_kline_interval(self):
        with pytest.raises(ConfigurationError, match="candle_interval_seconds"):
            Config(candle_interval_seconds=120)
        assert Config(candle_interval_seconds=300).candle_interval_seconds == 300

    def test_symbol_parts(self):
        cfg = Config(symbol="sol/usdt")
        assert cfg.base_asset == "sol"
        assert cfg.quote_asset == "usdt"
        assert cfg.market_symbol == "SOLUSDT"
        assert cfg.exchange_base_url == "https://api.binance.com"

    def test_bad_symbol(self):
        with pytest.raises(ConfigurationError, match="symbol"):
            Config(symbol="SOLUSDT")

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.stop_loss = 0.5  # type: ignore[misc]
