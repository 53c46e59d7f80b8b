"""Offline tick replay.

Feeds a recorded tick series through a ``TradingEngine`` using the ticks'
own timestamps as the clock, so a replay of the same input always produces
the same trades.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pandas as pd

logger = logging.getLogger("icctrade.replay")

_REQUIRED_COLUMNS = ("timestamp", "price")


def load_ticks_csv(path: str | Path) -> list[tuple[datetime, object]]:
    """Load ``timestamp,price`` rows from a CSV file.

    Timestamps are parsed as UTC.  Prices are passed through unvalidated;
    the engine drops malformed ones tick by tick.

    Raises:
        ValueError: If a required column is missing.
    """
    df = pd.read_csv(path)
    missing = [col for col in _REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    ticks = [
        (ts.to_pydatetime(), price)
        for ts, price in zip(df["timestamp"], df["price"])
    ]
    logger.info("Loaded %d ticks from %s", len(ticks), path)
    return ticks


async def replay(engine, ticks: Iterable[tuple[datetime, object]]) -> list[dict]:
    """Run every tick through *engine* and drain the final position.

    Candles are closed whenever the tick clock crosses a candle interval,
    before the tick that opens the next bar is ingested.

    Returns:
        One result dict per tick, plus the MANUAL close if one was needed.
    """
    results: list[dict] = []
    for timestamp, price in ticks:
        if engine.flush_due(timestamp):
            await engine.flush_candles(timestamp)
        results.append(await engine.on_tick(price, timestamp))

    drained = await engine.drain()
    if drained is not None:
        results.append(drained)

    summary = engine.ledger.summary()
    logger.info(
        "Replay finished: %d ticks, %d trades, net P&L %.2f",
        len(results), summary["total_trades"], summary["net_pnl"],
    )
    return results
