"""
Trading Cycle Pipeline - one iteration of the trading loop

Implements the per-iteration flow:
1. Resolve universe
2. Value portfolio (exactly once)
3. For each token: fetch data -> decision -> gate -> size -> execute

Every token is processed inside its own error boundary, so one failing
token never prevents the rest from running. Scheduling lives in
runner/main_loop.py.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ai.snapshot_builder import build_token_context
from core.categories import TargetRatios
from core.decision_gate import DecisionGate
from core.exceptions import IterationFatalError
from core.execution import collect_events
from core.interfaces import DecisionSource, MarketDataProvider, SwapExecutor
from core.orders import SizedOrder
from core.position_sizer import PositionSizer
from core.universe import UniverseResolver, UniverseToken
from core.valuation import PortfolioSnapshot, PortfolioValuationEngine, log_portfolio_breakdown

logger = logging.getLogger(__name__)

EXECUTED = "executed"
ERROR = "error"


@dataclass
class TokenOutcome:
    """What happened to one token in one iteration"""
    ticker: str
    unit: str
    status: str                     # "executed", "error" or a skip reason
    stage: str                      # last pipeline step reached
    direction: Optional[str] = None
    recommended_ada: float = 0.0
    final_ada: float = 0.0
    tx_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def executed(self) -> bool:
        return self.status == EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "unit": self.unit,
            "status": self.status,
            "stage": self.stage,
            "direction": self.direction,
            "recommended_ada": round(self.recommended_ada, 6),
            "final_ada": round(self.final_ada, 6),
            "tx_id": self.tx_id,
            "error": self.error,
        }


@dataclass
class IterationResult:
    """Result of one trading iteration"""
    iteration: int
    status: str                     # "ok" | "empty_universe" | "fatal"
    started_at: datetime
    finished_at: Optional[datetime] = None
    universe_size: int = 0
    constrained: bool = True
    snapshot: Optional[PortfolioSnapshot] = None
    outcomes: List[TokenOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def executed(self) -> int:
        return sum(1 for o in self.outcomes if o.executed)

    @property
    def approved(self) -> int:
        return sum(1 for o in self.outcomes if o.final_ada > 0)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == ERROR)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


ContextBuilder = Callable[..., Dict[str, Any]]


class TradingCyclePipeline:
    """
    Per-iteration pipeline.

    With no wallet address the portfolio is not valued and orders are only
    bounded by the gate (unconstrained). With an address configured, a failed
    valuation aborts the iteration.
    """

    def __init__(self,
                 universe: UniverseResolver,
                 market_data: MarketDataProvider,
                 valuation: PortfolioValuationEngine,
                 decision_source: DecisionSource,
                 gate: DecisionGate,
                 sizer: PositionSizer,
                 executor: SwapExecutor,
                 address: Optional[str] = None,
                 target_ratios: Optional[TargetRatios] = None,
                 decrement_snapshot: bool = True,
                 metrics=None,
                 context_builder: ContextBuilder = build_token_context):
        self.universe = universe
        self.market_data = market_data
        self.valuation = valuation
        self.decision_source = decision_source
        self.gate = gate
        self.sizer = sizer
        self.executor = executor
        self.address = address or None
        self.target_ratios = target_ratios
        self.decrement_snapshot = decrement_snapshot
        self.metrics = metrics
        self.context_builder = context_builder

        if self.address is None:
            logger.warning("No wallet address configured; portfolio constraints will be skipped")

    def value_portfolio(self) -> Optional[PortfolioSnapshot]:
        """
        Value the configured wallet.

        Returns None when no address is configured.

        Raises:
            IterationFatalError: address configured but valuation failed
        """
        if self.address is None:
            return None

        info = self.market_data.address_info(self.address)
        if info is None:
            raise IterationFatalError("address_info")

        units = [a.unit for a in info.assets if a.quantity > 0]
        prices = self.market_data.prices(units) if units else {}
        try:
            snapshot = self.valuation.value_address(info, prices)
        except ValueError as e:
            raise IterationFatalError("valuation", e)

        log_portfolio_breakdown(snapshot, self.target_ratios)
        if self.metrics is not None:
            self.metrics.record_portfolio(
                {c.value: v for c, v in snapshot.category_values.items()}, snapshot.total_ada_value
            )
        return snapshot

    def execute_iteration(self, iteration: int = 0) -> IterationResult:
        """Run one full iteration. Never raises for per-token failures."""
        result = IterationResult(iteration=iteration, status="ok", started_at=datetime.now(timezone.utc))

        try:
            universe = self.universe.resolve()
        except Exception as e:
            logger.error(f"Universe resolution failed, aborting iteration: {e}", exc_info=True)
            result.status = "fatal"
            result.error = str(IterationFatalError("universe", e))[:200]
            result.finished_at = datetime.now(timezone.utc)
            return result

        result.universe_size = len(universe)
        if not universe.tokens:
            logger.info("Universe is empty, nothing to evaluate this iteration")
            result.status = "empty_universe"
            result.finished_at = datetime.now(timezone.utc)
            return result

        try:
            snapshot = self.value_portfolio()
        except IterationFatalError as e:
            logger.error(f"Portfolio valuation failed, aborting iteration: {e}")
            result.status = "fatal"
            result.error = str(e)
            result.finished_at = datetime.now(timezone.utc)
            return result

        result.snapshot = snapshot
        result.constrained = snapshot is not None

        for token in universe.tokens:
            outcome, snapshot = self.process_token(token, snapshot)
            result.outcomes.append(outcome)
            if self.metrics is not None:
                self.metrics.record_token_outcome(outcome.status)

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Iteration {iteration} complete: {len(result.outcomes)} tokens, "
            f"{result.executed} executed, {result.failed} failed "
            f"({result.duration_seconds:.1f}s)"
        )
        return result

    def process_token(
        self,
        token: UniverseToken,
        snapshot: Optional[PortfolioSnapshot],
    ) -> Tuple[TokenOutcome, Optional[PortfolioSnapshot]]:
        """
        Run one token through fetch -> decide -> gate -> size -> execute.

        Returns the outcome and the snapshot later tokens should size against.
        """
        cfg = token.config
        outcome = TokenOutcome(ticker=cfg.ticker, unit=cfg.unit, status=ERROR, stage="fetch")
        logger.info(f"Processing {cfg.ticker} ({cfg.category.value})...")

        try:
            context = self.context_builder(self.market_data, cfg.ticker, cfg.unit,
                                           price=token.price, volume=token.volume)

            outcome.stage = "decide"
            rec = self.decision_source.decide(context)

            outcome.stage = "gate"
            gated = self.gate.evaluate(rec, cfg)
            if not gated.approved:
                outcome.status = gated.reason
                return outcome, snapshot

            order = gated.order
            outcome.direction = order.direction
            outcome.recommended_ada = order.amount_ada

            outcome.stage = "size"
            final_ada, reason = self._size(order, snapshot)
            outcome.final_ada = final_ada
            if final_ada <= 0:
                outcome.status = reason
                return outcome, snapshot

            sized = SizedOrder(
                direction=order.direction,
                amount_ada=final_ada,
                unit=order.unit,
                ticker=order.ticker,
                category=order.category,
            )
            logger.info(
                f"[PORTFOLIO] {cfg.ticker} {sized.direction}: recommended {order.amount_ada:.2f} ADA, "
                f"final {final_ada:.2f} ADA"
            )

            outcome.stage = "execute"
            execution = collect_events(sized, self.executor.execute(sized))
            if not execution.success:
                outcome.status = ERROR
                outcome.error = execution.error
                logger.warning(f"Swap for {cfg.ticker} failed: {execution.error}")
                return outcome, snapshot

            outcome.status = EXECUTED
            outcome.tx_id = execution.tx_id
            if snapshot is not None and self.decrement_snapshot and self._credits_snapshot(sized):
                snapshot = snapshot.with_order(sized)
            return outcome, snapshot

        except Exception as e:
            logger.error(f"Error processing {cfg.ticker} at {outcome.stage}: {e}", exc_info=True)
            outcome.status = ERROR
            outcome.error = str(e)[:200]
            return outcome, snapshot

    def _credits_snapshot(self, order: SizedOrder) -> bool:
        # Unverified sells may exceed real holdings; their proceeds must not fund later buys.
        return order.direction == "buy" or self.sizer.verify_sell_holdings

    def _size(self, order: SizedOrder, snapshot: Optional[PortfolioSnapshot]) -> Tuple[float, Optional[str]]:
        if snapshot is None:
            if order.amount_ada < self.sizer.dust_threshold_ada:
                return 0.0, "below_dust"
            return order.amount_ada, None

        sizing = self.sizer.evaluate(order.direction, order.category, order.amount_ada, snapshot, unit=order.unit)
        if not sizing.approved:
            return 0.0, sizing.reason
        if sizing.final_ada < self.sizer.dust_threshold_ada:
            return 0.0, "below_dust"
        return sizing.final_ada, None
