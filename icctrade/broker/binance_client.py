"""Binance spot REST API async client.

Serves as the engine's price source (ticker, klines) and, in live mode, its
order executor (market orders, free balance).
"""

import asyncio
import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Optional
from urllib.parse import urlencode

import httpx

from icctrade.broker.models import Balance, OrderFill
from icctrade.config import KLINE_INTERVALS, Config
from icctrade.errors import FeedUnavailable, OrderExecutionFailed
from icctrade.strategy.models import LONG, CandleData

logger = logging.getLogger("icctrade.broker")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_QTY_STEP = Decimal("0.000001")


def kline_interval(seconds: int) -> str:
    """Map a candle interval in seconds to a Binance kline interval."""
    try:
        return KLINE_INTERVALS[seconds]
    except KeyError:
        raise ValueError(f"No Binance kline interval for {seconds}s") from None


class BinanceClient:
    """Async client wrapping the Binance spot REST API."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.exchange_base_url
        self._symbol = config.market_symbol
        self._api_key = config.api_key
        self._api_secret = config.api_secret

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        retry: bool = True,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.

        With ``retry=False`` the request is sent exactly once and any failure
        is raised.  Order placement always uses this path.
        """
        if not retry:
            async with httpx.AsyncClient() as client:
                resp = await getattr(client, method)(
                    url,
                    headers=self._headers(),
                    timeout=30.0,
                    **kwargs,
                )
            resp.raise_for_status()
            return resp

        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers(),
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d, retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s), retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        # All retries exhausted, raise the last error
        raise last_exc  # type: ignore[misc]

    def _headers(self) -> dict:
        if self._api_key:
            return {"X-MBX-APIKEY": self._api_key}
        return {}

    def _signed(self, params: dict) -> dict:
        """Add timestamp and HMAC-SHA256 signature to *params*."""
        signed = {**params, "timestamp": int(time.time() * 1000)}
        query = urlencode(signed)
        signed["signature"] = hmac.new(
            self._api_secret.encode(), query.encode(), hashlib.sha256,
        ).hexdigest()
        return signed

    # ── Market data ──────────────────────────────────────────────────────

    async def fetch_price(self) -> float:
        """Return the last traded price for the configured symbol.

        Raises:
            FeedUnavailable: If the ticker cannot be fetched or parsed.
        """
        url = f"{self._base_url}/api/v3/ticker/price"
        try:
            resp = await self._request_with_retry(
                "get", url, params={"symbol": self._symbol},
            )
            return float(resp.json()["price"])
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise FeedUnavailable(f"ticker unavailable: {exc}") from exc

    async def fetch_candles(self, limit: int = 100) -> list[CandleData]:
        """Fetch recent klines at the configured candle interval.

        Returns:
            List of ``CandleData`` ordered oldest-first.

        Raises:
            FeedUnavailable: If the klines cannot be fetched.
        """
        url = f"{self._base_url}/api/v3/klines"
        params = {
            "symbol": self._symbol,
            "interval": kline_interval(self._config.candle_interval_seconds),
            "limit": limit,
        }
        try:
            resp = await self._request_with_retry("get", url, params=params)
        except httpx.HTTPError as exc:
            raise FeedUnavailable(f"klines unavailable: {exc}") from exc

        candles: list[CandleData] = []
        for row in resp.json():
            candles.append(
                CandleData(
                    time=datetime.fromtimestamp(row[0] / 1000, tz=timezone.utc),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                )
            )
        return candles

    # ── Account ──────────────────────────────────────────────────────────

    async def fetch_balance(self, asset: str) -> Balance:
        """Query the account for one asset's balance (signed).

        Raises:
            FeedUnavailable: If the account cannot be fetched or parsed.
        """
        url = f"{self._base_url}/api/v3/account"
        try:
            resp = await self._request_with_retry("get", url, params=self._signed({}))
            for entry in resp.json().get("balances", []):
                if entry["asset"] == asset:
                    return Balance(
                        asset=asset,
                        free=float(entry["free"]),
                        locked=float(entry["locked"]),
                    )
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise FeedUnavailable(f"account unavailable: {exc}") from exc
        return Balance(asset=asset, free=0.0, locked=0.0)

    async def fetch_free_balance(self) -> float:
        """Free balance of the quote asset, used as trading capital."""
        balance = await self.fetch_balance(self._config.quote_asset)
        return balance.free

    # ── Orders ───────────────────────────────────────────────────────────

    async def place_market_order(self, side: str, quantity: float) -> OrderFill:
        """Place a MARKET order and return its fill.

        The quantity is truncated to 6 decimals, never rounded up.  The
        request is sent once; a failed or timed-out order is not resent.

        Raises:
            OrderExecutionFailed: On any HTTP failure or an unfilled order.
        """
        qty = format_quantity(quantity)
        if Decimal(qty) <= 0:
            raise OrderExecutionFailed(f"{side} quantity {quantity} rounds to zero")

        url = f"{self._base_url}/api/v3/order"
        params = self._signed({
            "symbol": self._symbol,
            "side": side,
            "type": "MARKET",
            "quantity": qty,
            "newOrderRespType": "FULL",
        })
        try:
            resp = await self._request_with_retry("post", url, retry=False, params=params)
            data = resp.json()
            executed = float(data.get("executedQty", 0))
            if executed <= 0:
                raise OrderExecutionFailed(
                    f"{side} order {data.get('orderId')} not filled "
                    f"(status {data.get('status')})"
                )
            fill = OrderFill(
                order_id=str(data["orderId"]),
                symbol=data["symbol"],
                side=data["side"],
                quantity=executed,
                price=float(data["cummulativeQuoteQty"]) / executed,
                status=data["status"],
            )
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise OrderExecutionFailed(f"{side} order failed: {exc}") from exc

        logger.info("Order %s executed: %s %.6f @ %.4f",
                    fill.order_id, fill.side, fill.quantity, fill.price)
        return fill

    async def open_order(self, direction: str, quantity: float) -> OrderFill:
        """Enter a position; returns the fill (price and executed quantity)."""
        side = "BUY" if direction == LONG else "SELL"
        return await self.place_market_order(side, quantity)

    async def close_order(self, direction: str, quantity: float) -> OrderFill:
        """Exit a position opened in *direction*; returns the fill."""
        side = "SELL" if direction == LONG else "BUY"
        return await self.place_market_order(side, quantity)


def format_quantity(quantity: float) -> str:
    """Order quantity as a 6-decimal string, truncated toward zero."""
    return str(Decimal(repr(quantity)).quantize(_QTY_STEP, rounding=ROUND_DOWN))
