"""
Decision model schemas.

Raw JSON returned by the model is parsed into LlmDecision, then converted
into the core's TradeRecommendation. Anything that does not fit the schema
raises DecisionParseError.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal

from core.exceptions import DecisionParseError
from core.orders import TradeRecommendation

REASONING_KEYS = (
    "price_analysis",
    "volume_analysis",
    "risk_assessment",
    "confidence_explanation",
    "size_explanation",
)


@dataclass
class LlmDecision:
    """Single-token decision as produced by the model."""
    trade: bool
    direction: Literal["buy", "sell"]
    confidence: float           # 0.0–1.0
    size: float                 # ADA
    reasoning: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Clamp values to sane ranges."""
        self.confidence = max(0.0, min(1.0, self.confidence))
        self.size = max(0.0, self.size)
        self.reasoning = {k: str(v)[:500] for k, v in self.reasoning.items()}

    @classmethod
    def from_dict(cls, data: Any) -> "LlmDecision":
        if not isinstance(data, dict):
            raise DecisionParseError(f"Decision must be a JSON object, got {type(data).__name__}")

        missing = [k for k in ("trade", "direction", "confidence") if k not in data]
        if missing:
            raise DecisionParseError(f"Decision missing fields: {', '.join(missing)}")

        direction = str(data["direction"]).strip().lower()
        if direction not in ("buy", "sell"):
            raise DecisionParseError(f"Invalid direction: {data['direction']!r}")

        try:
            confidence = float(data["confidence"])
            size = float(data.get("size") or 0.0)
        except (TypeError, ValueError) as e:
            raise DecisionParseError(f"Non-numeric confidence/size: {e}")
        if confidence != confidence or size != size:
            raise DecisionParseError("NaN confidence/size")

        reasoning = data.get("reasoning") or {}
        if not isinstance(reasoning, dict):
            reasoning = {"summary": reasoning}

        return cls(
            trade=_parse_flag(data["trade"]),
            direction=direction,
            confidence=confidence,
            size=size,
            reasoning=reasoning,
        )

    def to_recommendation(self) -> TradeRecommendation:
        return TradeRecommendation(
            direction=self.direction,
            trade=self.trade,
            confidence=self.confidence,
            proposed_size=self.size,
            rationale=dict(self.reasoning),
        )


def _parse_flag(value: Any) -> bool:
    """The model is asked for "true"/"false" strings but sometimes returns booleans."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise DecisionParseError(f"Invalid trade flag: {value!r}")
