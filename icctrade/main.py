"""ICCTrade: application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
paper, live, and replay modes.
"""

import logging

from fastapi import FastAPI

from icctrade.api.routers import router

app = FastAPI(title="ICCTrade Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("icctrade")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def warn_if_live(mode: str) -> bool:
    """Log a prominent warning when running in live mode.

    Returns ``True`` if *mode* is ``"live"``.
    """
    if mode == "live":
        logger.warning(
            "LIVE TRADING MODE: real money at risk! Starting in 5 seconds..."
        )
        return True
    return False


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import dataclasses
    import signal
    import sys
    import time

    from icctrade.api.routers import configure_routers
    from icctrade.broker.binance_client import BinanceClient
    from icctrade.config import load_config
    from icctrade.engine import TradingEngine
    from icctrade.errors import ConfigurationError
    from icctrade.repos.db import init_db
    from icctrade.repos.trade_repo import TradeRepo

    parser = argparse.ArgumentParser(description="ICCTrade trading bot")
    parser.add_argument(
        "--mode",
        choices=["paper", "live", "replay"],
        default=None,
        help="Trading mode (default: TRADING_MODE from the environment)",
    )
    parser.add_argument("--ticks", help="CSV of timestamp,price rows (replay mode)")
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading engine without the API server",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    mode = args.mode
    try:
        config = load_config()
        if mode == "replay":
            config = dataclasses.replace(config, trading_mode="paper")
        elif mode is not None:
            config = dataclasses.replace(config, trading_mode=mode)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)
    mode = mode or config.trading_mode
    logging.getLogger().setLevel(config.log_level.upper())

    if mode == "replay" and not args.ticks:
        parser.error("--ticks is required in replay mode")

    trade_repo = None
    if config.save_trade_log:
        init_db(config.db_path)
        trade_repo = TradeRepo(config.db_path, mode=config.trading_mode, symbol=config.symbol)

    if mode == "replay":
        engine = TradingEngine(config, trade_repo=trade_repo)
        asyncio.run(_run_replay(engine, args.ticks))
        return

    if warn_if_live(mode):
        time.sleep(5)

    client = BinanceClient(config)
    engine = TradingEngine(
        config,
        feed=client,
        executor=client if mode == "live" else None,
        trade_repo=trade_repo,
    )
    configure_routers(engine=engine, trade_repo=trade_repo)

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.engine_only:
        asyncio.run(_run_engine_only(engine, mode))
    else:
        asyncio.run(_run_engine_and_api(engine, mode, config.health_port))


async def _run_engine_and_api(engine, mode: str, port: int = 8080) -> None:
    """Start the API server and the trading engine concurrently."""
    import asyncio

    import uvicorn

    logger.info("Starting ICCTrade in %s mode on %s (%s strategy).",
                mode, engine.config.symbol, engine.strategy.name)

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    async def _run_engine():
        await engine.initialize()
        try:
            await engine.run()
        finally:
            server.should_exit = True

    logger.info("Status API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        _run_engine(),
        return_exceptions=True,
    )
    logger.info("ICCTrade stopped. Results: %s", results)
    _log_summary(engine)


async def _run_engine_only(engine, mode: str) -> None:
    """Run the trading engine without starting the API server."""
    logger.info("Starting ICCTrade engine (no API) in %s mode.", mode)
    await engine.initialize()
    await engine.run()
    _log_summary(engine)


async def _run_replay(engine, ticks_path: str) -> None:
    """Replay a recorded tick file through the engine."""
    from icctrade.backtest.replay import load_ticks_csv, replay

    ticks = load_ticks_csv(ticks_path)
    await replay(engine, ticks)
    _log_summary(engine)


def _log_summary(engine) -> None:
    stats = engine.ledger.summary()
    logger.info(
        "Session complete: %d trades, win rate %.1f%%, net P&L $%.2f, balance $%.2f",
        stats["total_trades"],
        stats["win_rate"],
        stats["net_pnl"],
        stats["balance"],
    )


if __name__ == "__main__":
    _run_cli()
