"""Tests for the status API endpoints."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from icctrade.api.routers import configure_routers
from icctrade.config import Config
from icctrade.engine import TradingEngine
from icctrade.main import app, warn_if_live
from icctrade.strategy.models import CandleData

client = TestClient(app)

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_engine() -> TradingEngine:
    engine = TradingEngine(Config(swing_radius=2, initial_capital=1000.0))
    highs = [98.0, 99.0, 100.0, 99.0, 98.0]
    engine.seed_candles(
        CandleData(_T0 - timedelta(minutes=5 - i), h, h, h - 1.0, h)
        for i, h in enumerate(highs)
    )
    return engine


def _open_position(engine: TradingEngine) -> None:
    async def _ticks():
        for i, price in enumerate([100.0, 100.25, 100.05, 100.60, 101.0]):
            await engine.on_tick(price, _T0 + timedelta(seconds=5 * i))

    asyncio.run(_ticks())


@pytest.fixture(autouse=True)
def _reset_routers():
    configure_routers(engine=None, trade_repo=None)
    yield
    configure_routers(engine=None, trade_repo=None)


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestStatusEndpoints:
    def test_status_without_engine(self):
        assert "error" in client.get("/status").json()

    def test_status(self):
        engine = _make_engine()
        configure_routers(engine=engine)
        data = client.get("/status").json()
        assert data["mode"] == "paper"
        assert data["symbol"] == "SOL/USDT"
        assert data["phase"] == "WAITING"
        assert data["position"] is None

    def test_status_with_position(self):
        engine = _make_engine()
        _open_position(engine)
        configure_routers(engine=engine)
        data = client.get("/status").json()
        assert data["price"] == 101.0
        assert data["position"]["direction"] == "long"
        assert data["position"]["entry_price"] == 100.60

    def test_performance(self):
        configure_routers(engine=_make_engine())
        data = client.get("/performance").json()
        assert data["total_trades"] == 0
        assert data["win_rate"] == 0.0
        assert data["balance"] == 1000.0

    def test_levels(self):
        configure_routers(engine=_make_engine())
        data = client.get("/levels").json()
        assert data["resistance"] == [{"price": 100.0, "strength": 1}]
        assert data["support"] == []


class TestTradesEndpoint:
    def test_trades_from_repo(self):
        repo = MagicMock()
        repo.get_trades.return_value = {"trades": [{"id": 1}], "total": 1}
        configure_routers(engine=_make_engine(), trade_repo=repo)
        data = client.get("/trades?limit=5").json()
        assert data == {"trades": [{"id": 1}], "total": 1}
        repo.get_trades.assert_called_once_with(limit=5)

    def test_trades_from_ledger(self):
        engine = _make_engine()
        _open_position(engine)
        configure_routers(engine=engine)
        client.post("/position/close")
        data = client.get("/trades").json()
        assert data["total"] == 1
        assert data["trades"][0]["close_reason"] == "MANUAL"

    def test_limit_validated(self):
        assert client.get("/trades?limit=0").status_code == 422


class TestClosePosition:
    def test_close_when_flat(self):
        configure_routers(engine=_make_engine())
        data = client.post("/position/close").json()
        assert data["closed"] is False

    def test_close_open_position(self):
        engine = _make_engine()
        _open_position(engine)
        configure_routers(engine=engine)
        data = client.post("/position/close").json()
        assert data["closed"] is True
        assert data["reason"] == "MANUAL"
        assert not engine.positions.has_position


def test_warn_if_live():
    assert warn_if_live("live") is True
    assert warn_if_live("paper") is False
