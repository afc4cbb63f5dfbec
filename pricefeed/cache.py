"""Thread-safe store of the latest quote per canonical id."""

from __future__ import annotations

from threading import Lock

from .models import Quote


class QuoteCache:
    """Latest successful quote for each canonical id.

    Each scheduler keeps one as its last-quote map. Writers: the owning
    scheduler. Readers: anything that wants a snapshot without waiting for
    the next publish.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, Quote] = {}
        self._lock = Lock()

    def update_many(self, quotes: dict[str, Quote]) -> None:
        with self._lock:
            self._quotes.update(quotes)

    def prices(self) -> dict[str, float]:
        with self._lock:
            return {cid: q.price for cid, q in self._quotes.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, canonical_id: str) -> bool:
        with self._lock:
            return canonical_id in self._quotes
