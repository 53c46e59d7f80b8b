"""Tests for icctrade.risk: trailing stop, sizing, and the position lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from icctrade.config import Config
from icctrade.risk.models import MANUAL, PROFIT, STOP_LOSS, TIME_LIMIT
from icctrade.risk.position_manager import PositionManager
from icctrade.risk.position_sizer import budget_fraction, fixed_quantity, sizer_from_config
from icctrade.risk.trailing_stop import TrailingStop
from icctrade.strategy.models import LONG, SHORT

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _manager(**overrides) -> PositionManager:
    params = dict(
        stop_loss_pct=0.0125,
        trailing_stop_pct=0.0075,
        profit_target_pct=0.025,
        max_holding=timedelta(hours=24),
        fee_rate=0.001,
        slippage_rate=0.0,
    )
    params.update(overrides)
    return PositionManager(**params)


# ── Trailing stop ────────────────────────────────────────────────────────


class TestTrailingStop:
    def test_long_never_loosens(self):
        ts = TrailingStop(initial_sl=98.75, direction=LONG, trail_pct=0.0075)
        path = [100, 101, 102, 103, 102.5, 101, 99, 104, 100]
        values = []
        for price in path:
            ts.update(price)
            values.append(ts.current_sl)
        assert values == sorted(values)
        assert ts.current_sl == pytest.approx(104 * (1 - 0.0075))

    def test_short_never_loosens(self):
        ts = TrailingStop(initial_sl=101.25, direction=SHORT, trail_pct=0.0075)
        path = [100, 99, 98, 99.5, 97, 100]
        values = []
        for price in path:
            ts.update(price)
            values.append(ts.current_sl)
        assert values == sorted(values, reverse=True)

    def test_update_reports_moves(self):
        ts = TrailingStop(initial_sl=98.75, direction=LONG, trail_pct=0.0075)
        assert ts.update(99.0) is None  # 98.2575 is below the initial stop
        assert ts.update(101.0) == pytest.approx(100.2425)
        assert ts.update(100.5) is None

    def test_is_hit(self):
        ts = TrailingStop(initial_sl=98.75, direction=LONG, trail_pct=0.0075)
        assert not ts.is_hit(99.0)
        assert ts.is_hit(98.75)
        short = TrailingStop(initial_sl=101.25, direction=SHORT, trail_pct=0.0075)
        assert short.is_hit(101.25)
        assert not short.is_hit(101.0)

    def test_invalid_direction(self):
        with pytest.raises(ValueError):
            TrailingStop(100.0, "sideways", 0.01)


# ── Sizing ───────────────────────────────────────────────────────────────


class TestSizing:
    def test_budget_fraction(self):
        size = budget_fraction(0.95)
        assert size(10.0, 20.0) == pytest.approx(0.475)

    def test_budget_without_capital(self):
        assert budget_fraction(0.5)(0.0, 100.0) == 0.0

    def test_budget_rejects_bad_price(self):
        with pytest.raises(ValueError):
            budget_fraction(0.5)(100.0, 0.0)

    def test_budget_fraction_bounds(self):
        with pytest.raises(ValueError):
            budget_fraction(1.5)
        with pytest.raises(ValueError):
            budget_fraction(0.0)

    def test_fixed_quantity(self):
        assert fixed_quantity(2.0)(0.0, 123.0) == 2.0

    def test_from_config(self):
        assert sizer_from_config(Config(sizing_rule="fixed", fixed_quantity=3.0))(1.0, 1.0) == 3.0
        assert sizer_from_config(Config(position_size_pct=0.5))(100.0, 10.0) == 5.0


# ── Position manager ─────────────────────────────────────────────────────


class TestPositionManager:
    def test_open_sets_initial_stop(self):
        pm = _manager()
        long_pos = pm.open(LONG, 100.0, _T0, 1.0)
        assert long_pos.initial_stop_loss == pytest.approx(98.75)
        pm.close(100.0, _T0, MANUAL)
        short_pos = pm.open(SHORT, 100.0, _T0, 1.0)
        assert short_pos.initial_stop_loss == pytest.approx(101.25)

    def test_single_position(self):
        pm = _manager()
        assert pm.open(LONG, 100.0, _T0, 1.0) is not None
        assert pm.open(SHORT, 100.0, _T0, 1.0) is None
        assert pm.position.direction == LONG

    def test_rejects_non_positive_quantity(self):
        pm = _manager()
        assert pm.open(LONG, 100.0, _T0, 0.0) is None
        assert not pm.has_position

    def test_fee_round_trip(self):
        pm = _manager(fee_rate=0.001)
        pm.open(LONG, 100.0, _T0, 1.0)
        record = pm.close(102.0, _T0 + timedelta(minutes=5), PROFIT)
        assert record.gross_pnl == pytest.approx(2.00)
        assert record.fees == pytest.approx(0.202)
        assert record.net_pnl == pytest.approx(1.798)
        assert record.close_reason == PROFIT
        assert record.entry_time == _T0
        assert not pm.has_position

    def test_slippage_charged_on_turnover(self):
        pm = _manager(fee_rate=0.0, slippage_rate=0.0005)
        pm.open(SHORT, 100.0, _T0, 2.0)
        record = pm.close(99.0, _T0, MANUAL)
        assert record.gross_pnl == pytest.approx(2.0)
        assert record.slippage == pytest.approx((200.0 + 198.0) * 0.0005)
        assert record.net_pnl == pytest.approx(2.0 - 0.199)

    def test_profit_target(self):
        pm = _manager()
        pm.open(LONG, 100.0, _T0, 1.0)
        assert pm.evaluate(101.0, _T0) is None
        assert pm.evaluate(102.6, _T0) == PROFIT

    def test_stop_loss(self):
        pm = _manager()
        pm.open(LONG, 100.0, _T0, 1.0)
        assert pm.evaluate(98.75, _T0) == STOP_LOSS

    def test_trailing_stop_locks_in_gain(self):
        pm = _manager()
        pm.open(LONG, 100.0, _T0, 1.0)
        assert pm.evaluate(102.0, _T0) is None
        # Stop trails to 102 * 0.9925 = 101.235
        assert pm.evaluate(101.3, _T0) is None
        assert pm.evaluate(101.2, _T0) == STOP_LOSS

    def test_short_trailing_stop_hits(self):
        pm = _manager()
        pm.open(SHORT, 100.0, _T0, 1.0)
        stops = [pm.position.stop.active_stop]
        assert stops[0] == pytest.approx(101.25)

        assert pm.evaluate(99.0, _T0) is None
        stops.append(pm.position.stop.active_stop)
        # Stop trails to 99 * 1.0075 = 99.7425
        assert stops[-1] == pytest.approx(99.7425)

        assert pm.evaluate(99.5, _T0) is None
        stops.append(pm.position.stop.active_stop)
        assert stops == sorted(stops, reverse=True)

        assert pm.evaluate(99.8, _T0) == STOP_LOSS
        record = pm.close(99.8, _T0, STOP_LOSS)
        assert record.gross_pnl == pytest.approx(0.2)

    def test_time_limit(self):
        pm = _manager(max_holding=timedelta(hours=1))
        pm.open(SHORT, 100.0, _T0, 1.0)
        assert pm.evaluate(100.0, _T0 + timedelta(minutes=59)) is None
        assert pm.evaluate(100.0, _T0 + timedelta(hours=1)) == TIME_LIMIT

    def test_profit_takes_priority_over_time_limit(self):
        pm = _manager(max_holding=timedelta(minutes=1))
        pm.open(LONG, 100.0, _T0, 1.0)
        assert pm.evaluate(103.0, _T0 + timedelta(hours=1)) == PROFIT

    def test_stop_takes_priority_over_time_limit(self):
        pm = _manager(max_holding=timedelta(minutes=1))
        pm.open(LONG, 100.0, _T0, 1.0)
        assert pm.evaluate(98.0, _T0 + timedelta(hours=1)) == STOP_LOSS

    def test_close_when_flat(self):
        assert _manager().close(100.0, _T0, MANUAL) is None

    def test_position_to_dict(self):
        pm = _manager()
        pm.open(LONG, 100.0, _T0, 2.0)
        data = pm.position.to_dict(101.0)
        assert data["unrealized_pnl"] == pytest.approx(2.0)
        assert data["unrealized_pct"] == pytest.approx(1.0)
        assert data["entry_time"] == _T0.isoformat()
