"""
Universe Resolver

Produces the ordered, deduplicated list of tokens evaluated in one iteration.

Sources:
- PREDEFINED_LIST: tokens from tokens.yaml, in configured order
- TOP_VOLUME:      top-N tokens by 24h volume from the market data provider
- COMBINED:        configured tokens first, then top-volume tokens not already listed
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import logging
import math

from core.exceptions import ConfigurationError
from core.interfaces import MarketDataProvider, VolumeToken
from core.tokens import TokenConfig, TokenRegistry

logger = logging.getLogger(__name__)


class TokenSource(str, Enum):
    PREDEFINED_LIST = "PREDEFINED_LIST"
    TOP_VOLUME = "TOP_VOLUME"
    COMBINED = "COMBINED"

    @classmethod
    def parse(cls, value) -> "TokenSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ConfigurationError(f"Unknown token source '{value}' (allowed: {allowed})")


@dataclass
class UniverseToken:
    """Token selected for this iteration together with its trading config."""
    config: TokenConfig
    price: float = 0.0
    volume: float = 0.0

    @property
    def unit(self) -> str:
        return self.config.unit

    @property
    def ticker(self) -> str:
        return self.config.ticker


@dataclass
class UniverseSnapshot:
    timestamp: datetime
    source: TokenSource
    tokens: List[UniverseToken]

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def tickers(self) -> List[str]:
        return [t.ticker for t in self.tokens]


class UniverseResolver:

    def __init__(
        self,
        registry: TokenRegistry,
        market_data: MarketDataProvider,
        source: TokenSource = TokenSource.PREDEFINED_LIST,
        top_volume_count: int = 10,
    ):
        self.registry = registry
        self.market_data = market_data
        self.source = TokenSource.parse(source)
        self.top_volume_count = max(1, int(top_volume_count))

    def resolve(self) -> UniverseSnapshot:
        rows: List[VolumeToken] = []
        seen = set()

        if self.source in (TokenSource.PREDEFINED_LIST, TokenSource.COMBINED):
            configured = [VolumeToken(ticker=t.ticker, unit=t.unit) for t in self.registry.all()]
            logger.info(f"[UNIVERSE] Configured tokens: {[t.ticker for t in configured]}")
            self._extend_unique(rows, seen, configured)

        if self.source in (TokenSource.TOP_VOLUME, TokenSource.COMBINED):
            top = self.market_data.top_volume_tokens(self.top_volume_count)
            logger.info(f"[UNIVERSE] Top volume tokens: {[t.ticker for t in top]}")
            self._extend_unique(rows, seen, top)

        self._fill_missing_prices(rows)

        tokens = [
            UniverseToken(
                config=self.registry.resolve(row.unit, ticker=row.ticker or None),
                price=row.price,
                volume=row.volume,
            )
            for row in rows
        ]
        logger.info(f"[UNIVERSE] Total unique tokens to monitor: {len(tokens)} (source={self.source.value})")
        return UniverseSnapshot(timestamp=datetime.now(timezone.utc), source=self.source, tokens=tokens)

    @staticmethod
    def _extend_unique(rows: List[VolumeToken], seen: set, candidates: List[VolumeToken]) -> None:
        for candidate in candidates:
            key = (candidate.unit or "").lower()
            if not key or key in seen:
                continue
            seen.add(key)
            rows.append(candidate)

    def _fill_missing_prices(self, rows: List[VolumeToken]) -> None:
        missing = [row.unit for row in rows if not row.price]
        if not missing:
            return
        prices = self.market_data.prices(missing)
        for row in rows:
            if not row.price:
                row.price = self._price_for(prices, row.unit)

    @staticmethod
    def _price_for(prices: dict, unit: str) -> float:
        value = prices.get(unit, prices.get(unit.lower()))
        try:
            price = float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            return 0.0
        return price if math.isfinite(price) else 0.0
