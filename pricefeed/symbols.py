"""Symbol normalization: raw ticker text to provider-facing canonical ids."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Ticker -> CoinGecko-style id for the assets the UI lists by default
DEFAULT_SYMBOL_IDS: Mapping[str, str] = MappingProxyType(
    {
        "btc": "bitcoin",
        "eth": "ethereum",
        "bnb": "binancecoin",
        "usdt": "tether",
        "busd": "binance-usd",
        "usdc": "usd-coin",
        "sol": "solana",
        "ada": "cardano",
        "xrp": "ripple",
        "doge": "dogecoin",
        "dot": "polkadot",
        "avax": "avalanche-2",
        "matic": "matic-network",
        "link": "chainlink",
        "xlm": "stellar",
        "bch": "bitcoin-cash",
        "trx": "tron",
        "uni": "uniswap",
        "etc": "ethereum-classic",
        "wbtc": "wrapped-bitcoin",
        "steth": "staked-ether",
        "wsteth": "wrapped-steth",
        "sui": "sui",
        "hype": "hyperliquid",
        "leo": "leo-token",
        "fil": "filecoin",
        "hbar": "hedera",
        "shib": "shiba-inu",
        "rlc": "iexec-rlc",
    }
)

# Quote-currency suffixes stripped from pair-style input ("ETHUSDT" -> "eth")
DEFAULT_QUOTE_SUFFIXES: tuple[str, ...] = ("usdt",)


@dataclass(frozen=True)
class SymbolTable:
    """Read-only symbol -> canonical id mapping.

    Built once at startup and shared by reference. The mapping is wrapped in a
    ``MappingProxyType`` so concurrent readers never need a lock.
    """

    ids: Mapping[str, str] = field(default_factory=lambda: DEFAULT_SYMBOL_IDS)
    suffixes: tuple[str, ...] = DEFAULT_QUOTE_SUFFIXES
    _tickers: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType({k.lower(): v for k, v in self.ids.items()})
        object.__setattr__(self, "ids", frozen)
        object.__setattr__(self, "_tickers", MappingProxyType({v: k for k, v in frozen.items()}))

    def clean(self, symbol: str) -> str:
        """Lowercase and drop one trailing quote-currency suffix.

        The suffix is kept when stripping it would leave nothing ("usdt" stays
        "usdt" so it can still map to tether).
        """
        lower = str(symbol).strip().lower()
        for suffix in self.suffixes:
            if lower.endswith(suffix) and len(lower) > len(suffix):
                return lower[: -len(suffix)]
        return lower

    def normalize(self, symbol: str) -> str:
        """Map raw ticker text to a canonical id. Total and pure."""
        cleaned = self.clean(symbol)
        return self.ids.get(cleaned, cleaned)

    def ticker_for(self, canonical_id: str) -> str:
        """Reverse lookup for exchanges that quote by ticker, not by id."""
        return self._tickers.get(canonical_id, canonical_id)

    def with_overrides(self, extra: Mapping[str, str]) -> SymbolTable:
        """Return a new table with ``extra`` layered over this one."""
        merged = dict(self.ids)
        merged.update({k.lower(): v for k, v in extra.items()})
        return SymbolTable(ids=merged, suffixes=self.suffixes)

    def __contains__(self, symbol: str) -> bool:
        return self.clean(symbol) in self.ids

    def __len__(self) -> int:
        return len(self.ids)


DEFAULT_SYMBOL_TABLE = SymbolTable()


def normalize(symbol: str) -> str:
    """Normalize against the default table."""
    return DEFAULT_SYMBOL_TABLE.normalize(symbol)
