"""HTTP surface: SSE price stream, one-shot quotes and history."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from .feed import PriceFeed

logger = logging.getLogger(__name__)


def create_stream_router(feed: PriceFeed, heartbeat: float = 15.0) -> APIRouter:
    """Create the price router bound to ``feed``.

    This factory pattern lets us inject the PriceFeed without globals.
    """
    router = APIRouter(prefix="/api", tags=["prices"])

    @router.get("/stream/prices")
    async def stream_prices(
        request: Request,
        symbols: str = Query(..., description="Comma-separated tickers, e.g. BTC,ETH"),
        interval: float | None = Query(None, gt=0),
    ) -> StreamingResponse:
        """SSE endpoint for live price updates.

        The client connects with EventSource and receives one event per poll
        that produced quotes:

            data: {"bitcoin": 67000.5, "ethereum": 3500.1}

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        wanted = _split_symbols(symbols)
        if not wanted:
            raise HTTPException(status_code=422, detail="symbols must name at least one ticker")
        return StreamingResponse(
            _generate_events(feed, request, wanted, interval, heartbeat),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/prices/{symbol}")
    async def get_price(symbol: str) -> dict:
        """One-shot quote straight through the fallback chain."""
        quote = await feed.fetch_once(symbol)
        if quote is None:
            raise HTTPException(status_code=503, detail=f"No price available for {symbol}")
        return quote.to_dict()

    @router.get("/prices/{symbol}/history")
    async def get_history(symbol: str, days: int = Query(1, ge=1, le=365)) -> dict:
        points = await feed.fetch_history(symbol, days)
        return {
            "id": feed.symbols.normalize(symbol),
            "days": days,
            "prices": [p.to_dict() for p in points],
        }

    return router


def _split_symbols(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


async def _generate_events(
    feed: PriceFeed,
    request: Request,
    symbols: list[str],
    interval: float | None = None,
    heartbeat: float = 15.0,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted price events.

    Holds one feed subscription for the life of the connection and releases
    it when the client disconnects. Sends a comment line every ``heartbeat``
    seconds without updates so proxies keep the connection open.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    client_ip = request.client.host if request.client else "unknown"
    subscription = await feed.subscribe(symbols, interval)
    logger.info("SSE client connected: %s (%s)", client_ip, subscription.key)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break
            try:
                prices = await asyncio.wait_for(subscription.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            if prices is None:
                break
            yield f"data: {json.dumps(prices)}\n\n"
    finally:
        await feed.unsubscribe(subscription)
