"""Performance ledger: running totals over closed trades.

Tracks gross/net P&L, fees, slippage, win counts and a paper balance.
Breakeven trades count as wins.
"""

from icctrade.risk.models import TradeRecord


class PerformanceLedger:
    """Accumulates closed trades.

    Args:
        initial_capital: Starting paper balance.
        max_records: Size of the retained trade log (oldest evicted).
    """

    def __init__(self, initial_capital: float = 0.0, max_records: int = 50) -> None:
        self._initial_capital = initial_capital
        self._max_records = max_records
        self._trades: list[TradeRecord] = []
        self.trade_count: int = 0
        self.wins: int = 0
        self.net_wins: int = 0
        self.gross_pnl: float = 0.0
        self.total_fees: float = 0.0
        self.total_slippage: float = 0.0
        self.net_pnl: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def record(self, trade: TradeRecord) -> None:
        """Append *trade* to the log and update every total."""
        self._trades.append(trade)
        if len(self._trades) > self._max_records:
            del self._trades[0]

        self.trade_count += 1
        self.gross_pnl += trade.gross_pnl
        self.total_fees += trade.fees
        self.total_slippage += trade.slippage
        self.net_pnl += trade.net_pnl
        if trade.gross_pnl >= 0:
            self.wins += 1
        if trade.net_pnl >= 0:
            self.net_wins += 1

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def trades(self) -> list[TradeRecord]:
        """Retained trade log, oldest first."""
        return list(self._trades)

    @property
    def win_rate(self) -> float:
        """Gross win rate as a percentage (0.0 with no trades)."""
        if self.trade_count == 0:
            return 0.0
        return self.wins / self.trade_count * 100.0

    @property
    def net_win_rate(self) -> float:
        """Win rate after fees and slippage, as a percentage."""
        if self.trade_count == 0:
            return 0.0
        return self.net_wins / self.trade_count * 100.0

    @property
    def initial_capital(self) -> float:
        return self._initial_capital

    @property
    def balance(self) -> float:
        """Paper balance: initial capital plus net P&L."""
        return self._initial_capital + self.net_pnl

    @property
    def roi_pct(self) -> float:
        """Return on initial capital, as a percentage."""
        if self._initial_capital == 0:
            return 0.0
        return self.net_pnl / self._initial_capital * 100.0

    def summary(self) -> dict:
        """All totals as a dict, rounded for display."""
        return {
            "total_trades": self.trade_count,
            "wins": self.wins,
            "wins_after_fees": self.net_wins,
            "win_rate": round(self.win_rate, 2),
            "win_rate_after_fees": round(self.net_win_rate, 2),
            "gross_pnl": round(self.gross_pnl, 2),
            "total_fees": round(self.total_fees, 2),
            "total_slippage": round(self.total_slippage, 2),
            "net_pnl": round(self.net_pnl, 2),
            "balance": round(self.balance, 2),
            "roi_pct": round(self.roi_pct, 2),
        }
