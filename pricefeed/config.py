"""Runtime configuration for the price feed."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

PRIMARY_CHOICES = ("coinbase", "simulator", "none")

BINANCE_BASE_URL = "https://api.binance.com/api/v3"
COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINBASE_BASE_URL = "https://api.coinbase.com"


@dataclass(frozen=True)
class FeedConfig:
    """Immutable feed settings, built once at startup.

    Delays are in seconds. ``base_delay`` is the default poll interval and the
    floor of the backoff; ``max_delay`` is its ceiling.
    """

    base_delay: float = 5.0
    max_delay: float = 60.0
    request_timeout: float = 15.0
    primary: str = "coinbase"
    use_batch: bool = True
    binance_url: str = BINANCE_BASE_URL
    coingecko_url: str = COINGECKO_BASE_URL
    coinbase_url: str = COINBASE_BASE_URL

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError(f"base_delay must be positive, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.primary not in PRIMARY_CHOICES:
            raise ValueError(f"Unknown primary source {self.primary!r}; expected one of {PRIMARY_CHOICES}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FeedConfig:
        """Read ``PRICEFEED_*`` variables. Blank or missing values keep the defaults."""
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(f"PRICEFEED_{name}", "").strip()
            return value or None

        kwargs: dict = {}
        for name, attr in (
            ("BASE_DELAY", "base_delay"),
            ("MAX_DELAY", "max_delay"),
            ("REQUEST_TIMEOUT", "request_timeout"),
        ):
            raw = get(name)
            if raw is not None:
                try:
                    kwargs[attr] = float(raw)
                except ValueError:
                    raise ValueError(f"PRICEFEED_{name} must be a number, got {raw!r}") from None

        primary = get("PRIMARY")
        if primary is not None:
            kwargs["primary"] = primary.lower()

        batch = get("BATCH")
        if batch is not None:
            kwargs["use_batch"] = batch.lower() not in ("0", "false", "no", "off")

        for name, attr in (
            ("BINANCE_URL", "binance_url"),
            ("COINGECKO_URL", "coingecko_url"),
            ("COINBASE_URL", "coinbase_url"),
        ):
            raw = get(name)
            if raw is not None:
                kwargs[attr] = raw.rstrip("/")

        return cls(**kwargs)
