"""
Decision Gate

Validates a recommendation from the decision source and turns it into an
order request bounded by the token's trade size limits.

Rules (in order):
1. trade flag false -> reject
2. confidence below threshold -> reject
3. clamp proposed size into [min_trade_size, max_trade_size]
"""

from dataclasses import dataclass
from typing import Optional
import logging

from core.orders import DIRECTIONS, SizedOrder, TradeRecommendation
from core.tokens import TokenConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.6
DEFAULT_MIN_TRADE_SIZE = 50.0
DEFAULT_MAX_TRADE_SIZE = 500.0


@dataclass(frozen=True)
class GateResult:
    order: Optional[SizedOrder]
    reason: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.order is not None


class DecisionGate:

    def __init__(
        self,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        default_min_trade_size: float = DEFAULT_MIN_TRADE_SIZE,
        default_max_trade_size: float = DEFAULT_MAX_TRADE_SIZE,
    ):
        if default_min_trade_size > default_max_trade_size:
            raise ValueError(
                f"default_min_trade_size ({default_min_trade_size}) "
                f"> default_max_trade_size ({default_max_trade_size})"
            )
        self.confidence_threshold = confidence_threshold
        self.default_min_trade_size = default_min_trade_size
        self.default_max_trade_size = default_max_trade_size

    def gate(
        self,
        rec: TradeRecommendation,
        cfg: TokenConfig,
        confidence_threshold: Optional[float] = None,
    ) -> Optional[SizedOrder]:
        """Return a SizedOrder carrying the clamped recommended size, or None."""
        return self.evaluate(rec, cfg, confidence_threshold).order

    def evaluate(
        self,
        rec: TradeRecommendation,
        cfg: TokenConfig,
        confidence_threshold: Optional[float] = None,
    ) -> GateResult:
        threshold = self.confidence_threshold if confidence_threshold is None else confidence_threshold

        if rec is None or not isinstance(rec, TradeRecommendation):
            logger.warning(f"[GATE] {cfg.ticker}: malformed recommendation {rec!r}, treating as no-trade")
            return GateResult(None, "malformed")

        if not rec.trade:
            logger.info(f"[GATE] Skipping {cfg.ticker}, no trade recommended.")
            return GateResult(None, "no_trade")

        confidence = self._as_float(rec.confidence)
        if confidence is None or confidence < threshold:
            logger.info(f"[GATE] Skipping {cfg.ticker}, confidence only {rec.confidence} (< {threshold})")
            return GateResult(None, "low_confidence")

        if rec.direction not in DIRECTIONS:
            logger.warning(f"[GATE] {cfg.ticker}: invalid direction {rec.direction!r}, treating as no-trade")
            return GateResult(None, "malformed")

        recommended = self.clamp_size(rec.proposed_size, cfg)
        return GateResult(
            SizedOrder(
                direction=rec.direction,
                amount_ada=recommended,
                unit=cfg.unit,
                ticker=cfg.ticker,
                category=cfg.category,
            )
        )

    def clamp_size(self, proposed: Optional[float], cfg: TokenConfig) -> float:
        min_size = cfg.min_trade_size or self.default_min_trade_size
        max_size = cfg.max_trade_size or self.default_max_trade_size
        if min_size > max_size:
            # Token only overrides one bound
            min_size = min(min_size, max_size)

        size = self._as_float(proposed)
        if not size or size <= 0:
            size = min_size
        return min(max(size, min_size), max_size)

    @staticmethod
    def _as_float(value) -> Optional[float]:
        try:
            result = float(value)
        except (TypeError, ValueError):
            return None
        if result != result:  # NaN
            return None
        return result
