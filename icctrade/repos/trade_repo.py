"""Trade repository: SQLite persistence for closed trades."""

from icctrade.repos.db import get_connection
from icctrade.risk.models import TradeRecord


class TradeRepo:
    """Data access layer for trade records.

    Args:
        db_path: Path to the SQLite database file.
        mode: Trading mode stamped on each row (``"paper"`` or ``"live"``).
        symbol: Pair stamped on each row.
    """

    def __init__(self, db_path: str, mode: str = "paper", symbol: str = "") -> None:
        self._db_path = db_path
        self._mode = mode
        self._symbol = symbol

    # ── Write ────────────────────────────────────────────────────────────

    def insert_trade(self, trade: TradeRecord) -> int:
        """Insert a closed trade and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO trades
                    (mode, symbol, direction, entry_price, exit_price,
                     quantity, gross_pnl, fees, slippage, net_pnl,
                     close_reason, opened_at, closed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self._mode, self._symbol, trade.direction,
                    trade.entry_price, trade.exit_price, trade.quantity,
                    trade.gross_pnl, trade.fees, trade.slippage, trade.net_pnl,
                    trade.close_reason, trade.entry_time.isoformat(),
                    trade.timestamp.isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_trades(self, limit: int = 20) -> dict:
        """Return the most recent trades, newest first.

        Returns:
            ``{"trades": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM trades ORDER BY id DESC LIMIT ?", (limit,),
            ).fetchall()
            total = conn.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
            return {"trades": [dict(row) for row in rows], "total": total}
        finally:
            conn.close()
