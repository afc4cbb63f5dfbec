"""Abstract interface for price sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

from .models import Quote


class SourceKind(str, Enum):
    """The closed set of upstream families a chain can draw on."""

    SPOT = "spot"  # primary spot-price collaborator
    EXCHANGE_TICKER = "exchange_ticker"
    AGGREGATOR = "aggregator"


class PriceSource(ABC):
    """Contract for one upstream provider of point-in-time quotes.

    A source fetches a single current quote per call and never retries;
    retrying across time is the scheduler's job. Failures are raised as
    :class:`~pricefeed.errors.PriceFeedError` subclasses so the chain can
    move on to the next source.

    Usage:
        source = BinanceTickerSource(http_client)
        quote = await source.fetch_quote("bitcoin")
        if source.supports_batch:
            quotes = await source.fetch_quotes(["bitcoin", "ethereum"])
    """

    name: str = "source"
    kind: SourceKind
    supports_batch: bool = False

    @abstractmethod
    async def fetch_quote(self, canonical_id: str) -> Quote:
        """Fetch the current quote for one canonical id.

        Raises a PriceFeedError subclass on timeout, transport failure,
        malformed payload, missing id, or an id the provider cannot express.
        """

    async def fetch_quotes(self, canonical_ids: Sequence[str]) -> dict[str, Quote]:
        """Fetch quotes for several ids in one upstream request.

        Only meaningful when ``supports_batch`` is True. Ids the upstream has
        no price for are left out of the result; raises when none resolved.
        """
        raise NotImplementedError(f"{self.name} does not support batched quotes")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
