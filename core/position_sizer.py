"""
Position Sizer

Hard portfolio constraints applied to a gated order. Nothing upstream (the
LLM included) can push a buy past its category's target ratio or past the
spendable ADA balance.

Buy:
    room      = target_ratio[category] * total - value[category]
    spendable = max(0, value[ada] - fee_reserve)
    final     = min(recommended, room, spendable), 0 if below dust
Sell:
    recommended passes through, unless verify_sell_holdings is on, in which
    case it is capped to the ADA value of the token held.

Stateless and deterministic.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from core.categories import Category, TargetRatios
from core.orders import Direction
from core.valuation import PortfolioSnapshot

logger = logging.getLogger(__name__)

DEFAULT_FEE_RESERVE_ADA = 2.0
DEFAULT_DUST_THRESHOLD_ADA = 1.0


@dataclass(frozen=True)
class SizingResult:
    final_ada: float
    reason: Optional[str] = None    # set when final_ada == 0

    @property
    def approved(self) -> bool:
        return self.final_ada > 0


class PositionSizer:

    def __init__(
        self,
        target_ratios: TargetRatios,
        fee_reserve_ada: float = DEFAULT_FEE_RESERVE_ADA,
        dust_threshold_ada: float = DEFAULT_DUST_THRESHOLD_ADA,
        verify_sell_holdings: bool = False,
    ):
        self.target_ratios = target_ratios
        self.fee_reserve_ada = max(0.0, float(fee_reserve_ada))
        self.dust_threshold_ada = max(0.0, float(dust_threshold_ada))
        self.verify_sell_holdings = verify_sell_holdings

    def size(
        self,
        direction: Direction,
        category: Category,
        recommended_ada: float,
        snapshot: PortfolioSnapshot,
        unit: Optional[str] = None,
    ) -> float:
        return self.evaluate(direction, category, recommended_ada, snapshot, unit=unit).final_ada

    def evaluate(
        self,
        direction: Direction,
        category: Category,
        recommended_ada: float,
        snapshot: PortfolioSnapshot,
        unit: Optional[str] = None,
    ) -> SizingResult:
        recommended_ada = max(0.0, float(recommended_ada))
        if direction == "buy":
            return self._size_buy(Category.parse(category), recommended_ada, snapshot)
        if direction == "sell":
            return self._size_sell(recommended_ada, snapshot, unit)
        raise ValueError(f"Unknown direction: {direction!r}")

    def room_left(self, category: Category, snapshot: PortfolioSnapshot) -> float:
        max_allowed = self.target_ratios[category] * snapshot.total_ada_value
        return max_allowed - snapshot.value_of(category)

    def spendable(self, snapshot: PortfolioSnapshot) -> float:
        return max(0.0, snapshot.ada_balance - self.fee_reserve_ada)

    def _size_buy(self, category: Category, recommended_ada: float, snapshot: PortfolioSnapshot) -> SizingResult:
        room = self.room_left(category, snapshot)
        if room <= 0:
            logger.info(f"[PORTFOLIO] Category {category.value} is at/over target ratio. Skipping buy.")
            return SizingResult(0.0, "category_at_target")

        final_ada = min(recommended_ada, room, self.spendable(snapshot))
        if final_ada < self.dust_threshold_ada:
            logger.info(
                f"[PORTFOLIO] final {final_ada:.4f} ADA < dust threshold "
                f"{self.dust_threshold_ada} ADA, skipping buy."
            )
            return SizingResult(0.0, "below_dust")
        return SizingResult(final_ada)

    def _size_sell(self, recommended_ada: float, snapshot: PortfolioSnapshot, unit: Optional[str]) -> SizingResult:
        if not self.verify_sell_holdings:
            return SizingResult(recommended_ada)

        held = snapshot.held_value(unit) if unit else 0.0
        final_ada = min(recommended_ada, held)
        if final_ada < self.dust_threshold_ada:
            logger.info(f"[PORTFOLIO] Holdings worth {held:.4f} ADA insufficient for sell, skipping.")
            return SizingResult(0.0, "insufficient_holdings")
        return SizingResult(final_ada)
