"""Crypto price-feed aggregation.

Public API:
    Quote               - Immutable point-in-time price dataclass
    SubscriptionKey     - (canonical id set, interval) identity of a poller
    SymbolTable         - Read-only ticker -> canonical id mapping
    normalize           - Normalize a ticker against the default table
    PriceSource         - Abstract interface for upstream providers
    FallbackChain       - Ordered sources tried until one succeeds
    PollingScheduler    - Adaptive-backoff polling loop for one key
    BroadcastHub        - Fan-out of price maps to listeners
    SubscriptionRegistry - One scheduler per key, reference counted
    PriceFeed           - Consumer facade: subscribe / change / fetch_once
    FeedConfig          - Env-driven settings
    create_price_feed   - Factory wiring the default source chain
    create_stream_router - FastAPI router factory for the SSE endpoint
"""

from .chain import FallbackChain
from .config import FeedConfig
from .errors import (
    DecodeError,
    InvalidRequest,
    NotFound,
    PriceFeedError,
    QuoteUnavailable,
    TransportError,
)
from .factory import create_price_feed, create_price_sources
from .feed import PriceFeed, Subscription
from .hub import BroadcastHub, Listener
from .interface import PriceSource, SourceKind
from .models import PricePoint, Quote, SubscriptionKey
from .registry import SubscriptionRegistry
from .scheduler import Backoff, PollingScheduler, SchedulerStatus
from .stream import create_stream_router
from .symbols import DEFAULT_SYMBOL_TABLE, SymbolTable, normalize

__all__ = [
    "Quote",
    "PricePoint",
    "SubscriptionKey",
    "SymbolTable",
    "DEFAULT_SYMBOL_TABLE",
    "normalize",
    "PriceSource",
    "SourceKind",
    "FallbackChain",
    "Backoff",
    "PollingScheduler",
    "SchedulerStatus",
    "BroadcastHub",
    "Listener",
    "SubscriptionRegistry",
    "PriceFeed",
    "Subscription",
    "FeedConfig",
    "create_price_feed",
    "create_price_sources",
    "create_stream_router",
    "PriceFeedError",
    "TransportError",
    "DecodeError",
    "NotFound",
    "InvalidRequest",
    "QuoteUnavailable",
]
