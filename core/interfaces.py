"""
Collaborator interfaces consumed by the trading core.

Market data, asset metadata, decisions and swap execution are external.
The core only depends on these abstractions; adapters live in infra/, ai/
and core/execution.py.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

from core.orders import SizedOrder, SwapEvent, TradeRecommendation


@dataclass
class VolumeToken:
    """Token row from a top-volume listing. price/volume may be 0 until filled."""
    ticker: str
    unit: str
    price: float = 0.0
    volume: float = 0.0


@dataclass(frozen=True)
class AssetBalance:
    unit: str
    quantity: int   # raw on-chain integer quantity


@dataclass(frozen=True)
class AddressInfo:
    lovelace: int
    assets: List[AssetBalance] = field(default_factory=list)

    @property
    def ada_balance(self) -> float:
        return self.lovelace / 1_000_000


class MarketDataProvider(ABC):
    """
    Market data source. Implementations must never raise for transport or
    API errors: failures come back as empty results (or None for address info).
    """

    @abstractmethod
    def top_volume_tokens(self, n: int = 10) -> List[VolumeToken]:
        pass

    @abstractmethod
    def prices(self, units: Iterable[str]) -> Dict[str, float]:
        pass

    @abstractmethod
    def price_change(self, unit: str, timeframes: str = "1h,4h,24h") -> Dict[str, Any]:
        pass

    @abstractmethod
    def pools(self, unit: str, ada_only: bool = True) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def ohlcv(self, unit: str, interval: str = "1h", count: int = 24) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def trading_stats(self, unit: str, timeframe: str = "24h") -> Dict[str, Any]:
        pass

    @abstractmethod
    def market_cap(self, unit: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def address_info(self, address: str) -> Optional[AddressInfo]:
        pass


class AssetMetadataProvider(ABC):
    @abstractmethod
    def decimals(self, unit: str) -> int:
        """
        Return the token's decimals (>= 0).

        Raises:
            ExternalServiceError: if the lookup itself failed
        """
        pass


class DecisionSource(ABC):
    @abstractmethod
    def decide(self, token_context: Dict[str, Any]) -> TradeRecommendation:
        """Return a recommendation; malformed output must come back as a reject."""
        pass


class SwapExecutor(ABC):
    @abstractmethod
    def execute(self, order: SizedOrder) -> Iterator[SwapEvent]:
        """
        Execute a sized order, yielding building / submitted / error events.

        Only called with orders whose amount is at or above the dust threshold.
        """
        pass
