"""Tests for icctrade.market.candles: tick to OHLC aggregation."""

from datetime import datetime, timedelta, timezone

from icctrade.market.candles import CandleAggregator
from icctrade.strategy.models import CandleData

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestCandleAggregator:
    def test_flush_builds_ohlc(self):
        agg = CandleAggregator()
        for price in [100.0, 101.5, 99.2, 100.7]:
            agg.ingest(price, _T0)
        candle = agg.flush(_T0 + timedelta(minutes=1))
        assert candle == CandleData(
            time=_T0 + timedelta(minutes=1),
            open=100.0, high=101.5, low=99.2, close=100.7,
        )
        assert agg.candles == [candle]
        assert agg.pending_ticks == 0

    def test_flush_without_ticks_is_noop(self):
        agg = CandleAggregator()
        assert agg.flush(_T0) is None
        assert agg.candles == []

    def test_single_tick_bar(self):
        agg = CandleAggregator()
        agg.ingest(42.0)
        candle = agg.flush(_T0)
        assert candle.open == candle.high == candle.low == candle.close == 42.0

    def test_oldest_bar_evicted(self):
        agg = CandleAggregator(max_candles=2)
        for i in range(3):
            agg.ingest(100.0 + i)
            agg.flush(_T0 + timedelta(minutes=i))
        assert [c.close for c in agg.candles] == [101.0, 102.0]

    def test_seed_respects_cap(self):
        agg = CandleAggregator(max_candles=3)
        agg.seed(
            CandleData(_T0 + timedelta(minutes=i), i, i, i, i) for i in range(5)
        )
        assert [c.close for c in agg.candles] == [2, 3, 4]
