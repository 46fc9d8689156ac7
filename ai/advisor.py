"""
LLM Decision Source - single entry point for per-token trade decisions.

Handles model calls, response parsing and the reject fallback. The model
only recommends; the decision gate and position sizer remain the authority
on whether and how much to trade.
"""

import logging
import time
from typing import Any, Dict

from core.exceptions import DecisionParseError
from core.interfaces import DecisionSource
from core.orders import TradeRecommendation
from .model_client import ModelClient
from .schemas import LlmDecision

log = logging.getLogger(__name__)


class LLMDecisionSource(DecisionSource):
    """
    Decision source backed by a ModelClient.

    Any failure (API error, timeout, malformed JSON, schema violation)
    returns TradeRecommendation.reject(), so a bad response can never
    produce a trade.
    """

    def __init__(self, model_client: ModelClient, timeout_s: float = 30.0):
        self.model_client = model_client
        self.timeout_s = timeout_s

    def decide(self, token_context: Dict[str, Any]) -> TradeRecommendation:
        ticker = token_context.get("ticker", token_context.get("unit", "?"))
        start = time.perf_counter()
        try:
            resp = self.model_client.call(token_context, timeout=self.timeout_s)
            decision = LlmDecision.from_dict(resp)
        except DecisionParseError as e:
            log.warning(f"[LLM] Unusable decision for {ticker}: {e}")
            return TradeRecommendation.reject(reason=f"parse_error: {str(e)[:100]}")
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            log.error(f"[LLM] Decision error for {ticker} after {elapsed:.1f}ms: {e}", exc_info=True)
            return TradeRecommendation.reject(reason=f"error: {str(e)[:100]}")

        latency = (time.perf_counter() - start) * 1000
        log.info(
            f"[LLM] Decision for {ticker} in {latency:.1f}ms: trade={decision.trade} "
            f"direction={decision.direction} confidence={decision.confidence:.2f} size={decision.size:.2f}"
        )
        return decision.to_recommendation()
