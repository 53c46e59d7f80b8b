"""Internal API routers: /status, /performance, /trades, /levels, /position endpoints.

No business logic, no DB access. Delegates to the engine and the trade repo.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from icctrade.risk.models import MANUAL

logger = logging.getLogger("icctrade.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine = None       # Set via configure_routers()
_trade_repo = None   # Set via configure_routers()


def configure_routers(engine=None, trade_repo=None) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine: A ``TradingEngine`` instance (or duck-type for tests).
        trade_repo: Optional ``TradeRepo`` for the persisted trade log.
    """
    global _engine, _trade_repo  # noqa: PLW0603
    _engine = engine
    _trade_repo = trade_repo


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Engine snapshot: phase, price, nearest levels, position, performance."""
    if _engine is None:
        return {"error": "Engine not running"}
    return _engine.status()


@router.get("/performance")
async def get_performance():
    """Ledger summary."""
    if _engine is None:
        return {"error": "Engine not running"}
    return _engine.ledger.summary()


@router.get("/trades")
async def get_trades(limit: int = Query(default=20, ge=1, le=100)):
    """Return recent closed trades, newest first.

    Reads the persisted log when one is configured, otherwise the
    in-memory ledger.
    """
    if _trade_repo is not None:
        return _trade_repo.get_trades(limit=limit)
    if _engine is None:
        return {"trades": [], "total": 0}
    trades = [t.to_dict() for t in reversed(_engine.ledger.trades)]
    return {"trades": trades[:limit], "total": len(trades)}


@router.get("/levels")
async def get_levels():
    """Current resistance and support levels."""
    if _engine is None:
        return {"resistance": [], "support": []}
    return _engine.levels.snapshot()


@router.post("/position/close")
async def close_position():
    """Close the open position at the last price with reason MANUAL."""
    if _engine is None:
        return {"error": "Engine not running"}
    result: Optional[dict] = await _engine.close_position(MANUAL)
    if result is None:
        return {"closed": False, "reason": "no open position"}
    logger.info("Position closed via API: %s", result.get("action"))
    return {"closed": result.get("action") == "closed", **result}
