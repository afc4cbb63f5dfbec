"""GBM-based offline spot-price client.

Used as the primary source when no network primary is configured
(``PRICEFEED_PRIMARY=simulator``), e.g. in demos and offline development.
"""

from __future__ import annotations

import logging
import math
from threading import Lock

import numpy as np

logger = logging.getLogger(__name__)

# Rough starting prices per canonical id
SEED_PRICES: dict[str, float] = {
    "bitcoin": 67000.00,
    "ethereum": 3500.00,
    "binancecoin": 580.00,
    "solana": 150.00,
    "ripple": 0.60,
    "cardano": 0.45,
    "dogecoin": 0.15,
    "polkadot": 7.00,
    "chainlink": 15.00,
    "tether": 1.00,
    "usd-coin": 1.00,
}

# sigma: annualized volatility, mu: annualized drift
ASSET_PARAMS: dict[str, dict[str, float]] = {
    "bitcoin": {"sigma": 0.55, "mu": 0.10},
    "ethereum": {"sigma": 0.70, "mu": 0.10},
    "solana": {"sigma": 0.95, "mu": 0.10},
    "dogecoin": {"sigma": 1.10, "mu": 0.05},
    "tether": {"sigma": 0.002, "mu": 0.0},  # Stablecoin
    "usd-coin": {"sigma": 0.002, "mu": 0.0},  # Stablecoin
}

DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.80, "mu": 0.05}


class GBMSimulator:
    """Geometric Brownian Motion price paths, one per canonical id.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Crypto trades around the clock, so dt is measured against a full
    calendar year rather than a trading year.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600
    DEFAULT_DT = 5.0 / SECONDS_PER_YEAR  # one default poll interval

    def __init__(
        self,
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
        seed: int | None = None,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability
        self._rng = np.random.default_rng(seed)
        self._prices: dict[str, float] = {}
        self._lock = Lock()

    def price(self, canonical_id: str) -> float:
        """Current simulated price, seeding the path on first use."""
        with self._lock:
            return self._ensure(canonical_id)

    def step(self, canonical_id: str) -> float:
        """Advance one id by one time step and return its new price."""
        with self._lock:
            current = self._ensure(canonical_id)
            params = ASSET_PARAMS.get(canonical_id, DEFAULT_PARAMS)
            mu, sigma = params["mu"], params["sigma"]

            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * float(self._rng.standard_normal())
            new_price = current * math.exp(drift + diffusion)

            # Rare jump: a 2-5% move either way
            if self._rng.random() < self._event_prob:
                shock = float(self._rng.uniform(0.02, 0.05)) * float(self._rng.choice([-1, 1]))
                new_price *= 1 + shock
                logger.debug("Random event on %s: %+.1f%%", canonical_id, shock * 100)

            self._prices[canonical_id] = new_price
            return new_price

    def known_ids(self) -> list[str]:
        with self._lock:
            return list(self._prices)

    def _ensure(self, canonical_id: str) -> float:
        if canonical_id not in self._prices:
            seed = SEED_PRICES.get(canonical_id)
            if seed is None:
                seed = float(self._rng.uniform(1.0, 100.0))
            self._prices[canonical_id] = seed
        return self._prices[canonical_id]


class SimulatedSpotClient:
    """SpotPriceClient backed by :class:`GBMSimulator`. Never fails."""

    name = "simulator"

    def __init__(self, simulator: GBMSimulator | None = None) -> None:
        self._sim = simulator or GBMSimulator()

    @property
    def simulator(self) -> GBMSimulator:
        return self._sim

    async def fetch_spot_price(self, canonical_id: str) -> float:
        return self._sim.step(canonical_id)
