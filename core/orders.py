"""
Trade recommendation and order types.

Defines the contract between the decision source, the sizing core and the
swap executor.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from core.categories import Category, DEFAULT_CATEGORY

Direction = Literal["buy", "sell"]
DIRECTIONS = ("buy", "sell")

SwapEventKind = Literal["building", "submitted", "error"]


@dataclass(frozen=True)
class TradeRecommendation:
    """Recommendation from the decision source. Consumed once."""
    direction: Direction
    trade: bool
    confidence: float           # 0.0–1.0
    proposed_size: float        # ADA; 0 means "use min trade size"
    rationale: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def reject(cls, reason: str = "") -> "TradeRecommendation":
        """Reject-all default used whenever a decision is missing or malformed."""
        return cls(
            direction="buy",
            trade=False,
            confidence=0.0,
            proposed_size=0.0,
            rationale={"error": reason} if reason else {},
        )


@dataclass(frozen=True)
class SizedOrder:
    """Final order handed to the swap executor. amount_ada == 0 means skip."""
    direction: Direction
    amount_ada: float
    unit: str
    ticker: str = ""
    category: Category = DEFAULT_CATEGORY

    @property
    def is_skip(self) -> bool:
        return self.amount_ada <= 0

    @property
    def amount_lovelace(self) -> int:
        return int(round(self.amount_ada * 1_000_000))


@dataclass(frozen=True)
class SwapEvent:
    """Progress event emitted by a swap executor."""
    kind: SwapEventKind
    tx_id: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def building(cls) -> "SwapEvent":
        return cls(kind="building")

    @classmethod
    def submitted(cls, tx_id: str) -> "SwapEvent":
        return cls(kind="submitted", tx_id=tx_id)

    @classmethod
    def error(cls, reason: str) -> "SwapEvent":
        return cls(kind="error", reason=reason)
