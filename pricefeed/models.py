"""Data models for the price feed."""

from __future__ import annotations

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable point-in-time price for one canonical id."""

    canonical_id: str
    price: float
    source: str
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    def is_valid(self) -> bool:
        return math.isfinite(self.price) and self.price > 0

    def to_dict(self) -> dict:
        """Serialize for JSON responses."""
        return {
            "id": self.canonical_id,
            "price": self.price,
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class PricePoint:
    """One sample of a historical market chart."""

    timestamp: float  # Unix seconds
    price: float

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "price": self.price}


@dataclass(frozen=True, slots=True)
class SubscriptionKey:
    """Identity of a deduplicated polling task: an id set plus a poll interval.

    Two keys built from the same ids (in any order, with duplicates) and the
    same interval are equal and hash alike, so they share one scheduler.
    """

    ids: frozenset[str]
    interval: float

    def __post_init__(self) -> None:
        if not self.ids:
            raise ValueError("SubscriptionKey needs at least one canonical id")
        if self.interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.interval}")

    @classmethod
    def of(cls, ids: Iterable[str], interval: float) -> SubscriptionKey:
        return cls(ids=frozenset(ids), interval=float(interval))

    def sorted_ids(self) -> list[str]:
        return sorted(self.ids)

    def __str__(self) -> str:
        return f"{','.join(self.sorted_ids())}@{self.interval:g}s"
