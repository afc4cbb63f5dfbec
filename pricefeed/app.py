"""FastAPI application factory.

Run with: ``uvicorn --factory pricefeed.app:create_app``
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .factory import create_price_feed
from .feed import PriceFeed
from .stream import create_stream_router

logger = logging.getLogger(__name__)


def create_app(feed: PriceFeed | None = None) -> FastAPI:
    """Build the app around ``feed`` (or one created from the environment)."""
    feed = feed or create_price_feed()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Price feed ready: %r", feed.chain)
        yield
        await feed.close()

    app = FastAPI(title="pricefeed", lifespan=lifespan)
    app.state.feed = feed
    app.include_router(create_stream_router(feed))
    return app
