"""Failure taxonomy for price sources and the fallback chain."""

from __future__ import annotations


class PriceFeedError(Exception):
    """Base class for soft failures raised by a price source.

    These never reach a subscriber. The chain absorbs them and moves on to the
    next source; the scheduler absorbs a total failure by backing off.
    """


class TransportError(PriceFeedError):
    """Timeout, connection failure, rate limit or upstream 5xx."""


class DecodeError(PriceFeedError):
    """Payload was malformed or carried an unusable value."""


class NotFound(PriceFeedError):
    """Upstream answered, but it has no price for the requested id."""


class InvalidRequest(PriceFeedError):
    """The id cannot be turned into a request for this provider."""


class QuoteUnavailable(PriceFeedError):
    """Every source in a chain failed for ``canonical_id``."""

    def __init__(self, canonical_id: str, reasons: list[str]) -> None:
        self.canonical_id = canonical_id
        self.reasons = list(reasons)
        detail = "; ".join(self.reasons) or "no sources"
        super().__init__(f"All price sources failed for {canonical_id}: {detail}")
