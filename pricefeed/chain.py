"""Fallback chain: ordered price sources tried until one succeeds."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .errors import PriceFeedError, QuoteUnavailable
from .interface import PriceSource
from .models import Quote

logger = logging.getLogger(__name__)


class FallbackChain:
    """Ordered chain of price sources with short-circuit fallback.

    Order encodes preference (primary spot source, then exchange ticker, then
    aggregator). Each source is tried once per resolution; the first success
    wins and later sources are never called. This is not a race.
    """

    def __init__(self, sources: Sequence[PriceSource]) -> None:
        if not sources:
            raise ValueError("FallbackChain needs at least one price source")
        self._sources = list(sources)

    @property
    def sources(self) -> list[PriceSource]:
        return list(self._sources)

    @property
    def batch_source(self) -> PriceSource | None:
        """First source able to price many ids in one request, if any."""
        return next((s for s in self._sources if s.supports_batch), None)

    async def resolve(self, canonical_id: str) -> Quote:
        """Return the first successful quote, trying sources strictly in order.

        Raises QuoteUnavailable only when every source failed. Individual
        source failures are logged and never raised to the caller.
        """
        reasons: list[str] = []
        for source in self._sources:
            try:
                quote = await source.fetch_quote(canonical_id)
            except PriceFeedError as e:
                reasons.append(str(e))
                logger.debug("%s failed for %s: %s", source.name, canonical_id, e)
                continue
            if quote.is_valid():
                return quote
            msg = f"{source.name}: invalid quote (price={quote.price})"
            reasons.append(msg)
            logger.debug(msg)

        logger.warning("All price sources failed for %s", canonical_id)
        raise QuoteUnavailable(canonical_id, reasons)

    async def resolve_batch(self, canonical_ids: Sequence[str]) -> dict[str, Quote]:
        """Price a set of ids, in one upstream request when a batch source exists.

        Without a batch source, falls back to :meth:`resolve` per id. Ids that
        could not be priced are omitted; raises QuoteUnavailable when none were.
        """
        ids = list(dict.fromkeys(canonical_ids))
        label = ",".join(ids)
        source = self.batch_source

        if source is None:
            quotes: dict[str, Quote] = {}
            reasons: list[str] = []
            for canonical_id in ids:
                try:
                    quotes[canonical_id] = await self.resolve(canonical_id)
                except QuoteUnavailable as e:
                    reasons.extend(e.reasons)
            if not quotes:
                raise QuoteUnavailable(label, reasons)
            return quotes

        try:
            quotes = await source.fetch_quotes(ids)
        except PriceFeedError as e:
            logger.warning("Batch quote via %s failed for %s: %s", source.name, label, e)
            raise QuoteUnavailable(label, [str(e)]) from e
        valid = {cid: q for cid, q in quotes.items() if cid in ids and q.is_valid()}
        if not valid:
            raise QuoteUnavailable(label, [f"{source.name}: no valid quotes"])
        return valid

    def __len__(self) -> int:
        return len(self._sources)

    def __repr__(self) -> str:
        return f"<FallbackChain {' -> '.join(s.name for s in self._sources)}>"
