"""
Portfolio Valuation Engine

Converts wallet holdings + prices into per-category ADA values.

The resulting PortfolioSnapshot is immutable and lives for one iteration
only. Sizing within an iteration may derive updated snapshots with
with_order(); the original is never mutated.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional
import logging
import math

from core.categories import Category, DEFAULT_CATEGORY
from core.exceptions import ExternalServiceError
from core.interfaces import AddressInfo, AssetMetadataProvider
from core.orders import SizedOrder
from core.tokens import TokenRegistry

logger = logging.getLogger(__name__)

SNAPSHOT_EPSILON = 1e-6


@dataclass(frozen=True)
class Holding:
    """Raw wallet balance for one asset. decimals is resolved during valuation if None."""
    unit: str
    quantity: int
    decimals: Optional[int] = None


def _empty_categories() -> Dict[Category, float]:
    return {c: 0.0 for c in Category}


@dataclass(frozen=True)
class PortfolioSnapshot:
    """
    Point-in-time valuation used for one iteration's sizing decisions.

    category_values: Category -> ADA value (every category present)
    holding_values:  unit -> ADA value of each valued holding
    total_ada_value: sum of category_values
    """
    category_values: Mapping[Category, float]
    total_ada_value: float
    holding_values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        values = _empty_categories()
        values.update(self.category_values)
        object.__setattr__(self, "category_values", MappingProxyType(values))
        object.__setattr__(self, "holding_values", MappingProxyType(dict(self.holding_values)))

        if not all(math.isfinite(v) for v in values.values()) or not math.isfinite(self.total_ada_value):
            raise ValueError("Snapshot values must be finite")

        expected = math.fsum(values.values())
        if abs(expected - self.total_ada_value) > SNAPSHOT_EPSILON * max(1.0, abs(expected)):
            raise ValueError(
                f"Snapshot total {self.total_ada_value:.6f} != sum of categories {expected:.6f}"
            )

    @classmethod
    def from_values(
        cls,
        category_values: Mapping[Category, float],
        holding_values: Optional[Mapping[str, float]] = None,
    ) -> "PortfolioSnapshot":
        values = _empty_categories()
        for category, value in category_values.items():
            values[Category.parse(category)] = float(value)
        return cls(
            category_values=values,
            total_ada_value=math.fsum(values.values()),
            holding_values=dict(holding_values or {}),
        )

    @property
    def ada_balance(self) -> float:
        return self.category_values[Category.ADA]

    def value_of(self, category: Category) -> float:
        return self.category_values[Category.parse(category)]

    def share_of(self, category: Category) -> float:
        if self.total_ada_value <= 0:
            return 0.0
        return self.value_of(category) / self.total_ada_value

    def held_value(self, unit: str) -> float:
        return self.holding_values.get(unit.lower(), 0.0)

    def with_order(self, order: SizedOrder) -> "PortfolioSnapshot":
        """
        Return a new snapshot with an accepted order applied.

        Buys move value from ada into the order's category, sells move it
        back. The total is unchanged.
        """
        category = order.category
        if order.is_skip or category == Category.ADA:
            return self

        values = dict(self.category_values)
        holdings = dict(self.holding_values)
        unit = order.unit.lower()

        if order.direction == "buy":
            moved = min(order.amount_ada, values[Category.ADA])
            values[Category.ADA] -= moved
            values[category] += moved
            holdings[unit] = holdings.get(unit, 0.0) + moved
        else:
            moved = min(order.amount_ada, values[category])
            values[category] -= moved
            values[Category.ADA] += moved
            if unit in holdings:
                holdings[unit] = max(0.0, holdings[unit] - moved)

        return PortfolioSnapshot(
            category_values=values,
            total_ada_value=self.total_ada_value,
            holding_values=holdings,
        )

    def summary(self) -> Dict[str, float]:
        data = {c.value: round(v, 6) for c, v in self.category_values.items()}
        data["total"] = round(self.total_ada_value, 6)
        return data


Classifier = Callable[[str], Category]


class PortfolioValuationEngine:
    """
    Values holdings per category.

    Decimals come from the token registry first, then the metadata provider.
    A failed lookup for one asset zeroes that asset's contribution and is
    logged; the remaining assets are still valued.
    """

    def __init__(self, token_registry: TokenRegistry, metadata: Optional[AssetMetadataProvider] = None):
        self.tokens = token_registry
        self.metadata = metadata

    def value(
        self,
        holdings: Iterable[Holding],
        ada_balance: float,
        prices: Mapping[str, float],
        classify: Optional[Classifier] = None,
    ) -> PortfolioSnapshot:
        classify = classify or self.tokens.classify
        values = _empty_categories()
        holding_values: Dict[str, float] = {}

        values[Category.ADA] = float(ada_balance)

        for holding in holdings:
            unit = holding.unit.lower()
            price = self._resolve_price(holding.unit, prices)
            if price is None:
                continue

            decimals = self._resolve_decimals(holding)
            if decimals is None:
                continue

            value_ada = (holding.quantity / (10 ** decimals)) * price
            if not math.isfinite(value_ada):
                logger.warning(f"[PORTFOLIO] Non-finite value for {unit}, excluding from valuation")
                continue
            category = self._classify(unit, classify)

            values[category] += value_ada
            holding_values[unit] = holding_values.get(unit, 0.0) + value_ada

        return PortfolioSnapshot(
            category_values=values,
            total_ada_value=math.fsum(values.values()),
            holding_values=holding_values,
        )

    def value_address(self, info: AddressInfo, prices: Mapping[str, float]) -> PortfolioSnapshot:
        holdings = [Holding(unit=a.unit, quantity=a.quantity) for a in info.assets]
        return self.value(holdings, info.ada_balance, prices)

    @staticmethod
    def _resolve_price(unit: str, prices: Mapping[str, float]) -> Optional[float]:
        """Price in ADA per whole token, or None if the holding cannot be valued."""
        raw = prices.get(unit, prices.get(unit.lower()))
        if raw is None:
            logger.debug(f"[PORTFOLIO] No price for {unit}, excluding from valuation")
            return None
        try:
            price = float(raw)
        except (TypeError, ValueError):
            logger.warning(f"[PORTFOLIO] Unusable price for {unit}: {raw!r}")
            return None
        if not math.isfinite(price):
            logger.warning(f"[PORTFOLIO] Non-finite price for {unit}: {raw!r}, excluding from valuation")
            return None
        if price <= 0:
            logger.debug(f"[PORTFOLIO] Non-positive price for {unit}, excluding from valuation")
            return None
        return price

    def _resolve_decimals(self, holding: Holding) -> Optional[int]:
        if holding.decimals is not None:
            return holding.decimals

        configured = self.tokens.get(holding.unit)
        if configured is not None and configured.decimals is not None:
            return configured.decimals

        if self.metadata is None:
            logger.warning(f"[PORTFOLIO] No decimals source for {holding.unit}, excluding from valuation")
            return None

        try:
            decimals = int(self.metadata.decimals(holding.unit))
        except (ExternalServiceError, TypeError, ValueError) as exc:
            logger.warning(f"[PORTFOLIO] Decimals lookup failed for {holding.unit}: {exc}")
            return None
        if decimals < 0:
            logger.warning(f"[PORTFOLIO] Negative decimals {decimals} for {holding.unit}, excluding")
            return None
        return decimals

    @staticmethod
    def _classify(unit: str, classify: Classifier) -> Category:
        try:
            category = classify(unit)
        except Exception as exc:
            logger.warning(f"[PORTFOLIO] Classification failed for {unit}: {exc}")
            return DEFAULT_CATEGORY
        return Category.parse(category) if category is not None else DEFAULT_CATEGORY


def log_portfolio_breakdown(snapshot: PortfolioSnapshot, target_ratios=None) -> List[str]:
    """Log the per-category value table and return the lines written."""
    lines = ["[PORTFOLIO] Value Breakdown:"]
    for category in Category:
        value = snapshot.value_of(category)
        pct = snapshot.share_of(category) * 100.0
        line = f"  {category.value:<12}: {value:>12.2f} ADA ({pct:>6.2f}%)"
        if target_ratios is not None:
            line += f" target {target_ratios[category] * 100.0:>6.2f}%"
        lines.append(line)
    lines.append(f"[PORTFOLIO] Total Value: {snapshot.total_ada_value:.2f} ADA")

    for line in lines:
        logger.info(line)
    return lines
