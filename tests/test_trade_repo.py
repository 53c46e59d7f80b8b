"""Tests for the SQLite trade log."""

from datetime import datetime, timedelta, timezone

from icctrade.repos.db import get_connection, init_db
from icctrade.repos.trade_repo import TradeRepo
from icctrade.risk.models import PROFIT, STOP_LOSS, TradeRecord
from icctrade.strategy.models import LONG, SHORT

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _record(direction=LONG, reason=PROFIT, net=1.798) -> TradeRecord:
    return TradeRecord(
        timestamp=_T0 + timedelta(minutes=30),
        direction=direction,
        entry_price=100.0,
        exit_price=102.0,
        quantity=1.0,
        gross_pnl=2.0,
        fees=0.202,
        slippage=0.0,
        net_pnl=net,
        close_reason=reason,
        entry_time=_T0,
    )


class TestTradeRepo:
    def test_init_creates_parent_dirs(self, tmp_path):
        db_path = tmp_path / "nested" / "trades.db"
        init_db(str(db_path))
        assert db_path.exists()
        conn = get_connection(str(db_path))
        try:
            tables = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        finally:
            conn.close()
        assert "trades" in tables

    def test_insert_and_read_back(self, tmp_path):
        db_path = str(tmp_path / "trades.db")
        init_db(db_path)
        repo = TradeRepo(db_path, mode="paper", symbol="SOL/USDT")

        first = repo.insert_trade(_record())
        second = repo.insert_trade(_record(direction=SHORT, reason=STOP_LOSS, net=-1.0))
        assert second == first + 1

        result = repo.get_trades(limit=10)
        assert result["total"] == 2
        newest = result["trades"][0]
        assert newest["direction"] == SHORT
        assert newest["close_reason"] == STOP_LOSS
        assert newest["mode"] == "paper"
        assert newest["symbol"] == "SOL/USDT"
        assert newest["opened_at"] == _T0.isoformat()

    def test_limit(self, tmp_path):
        db_path = str(tmp_path / "trades.db")
        init_db(db_path)
        repo = TradeRepo(db_path)
        for _ in range(5):
            repo.insert_trade(_record())
        result = repo.get_trades(limit=2)
        assert len(result["trades"]) == 2
        assert result["total"] == 5
