"""
Token configuration, unit parsing and category classification.

A Cardano asset unit is the hex policy id (56 chars) followed by the hex
asset name. Classification compares the extracted policy id for equality.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from core.categories import Category, DEFAULT_CATEGORY
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

POLICY_ID_LENGTH = 56
LOVELACE_UNIT = "lovelace"


def split_unit(unit: str) -> Tuple[str, str]:
    """Split an asset unit into (policy_id, name_hex)."""
    unit = (unit or "").strip().lower()
    return unit[:POLICY_ID_LENGTH], unit[POLICY_ID_LENGTH:]


@dataclass(frozen=True)
class TokenConfig:
    """Trading parameters for one token. Sizes are ADA."""
    unit: str
    ticker: str
    category: Category = DEFAULT_CATEGORY
    min_trade_size: Optional[float] = None
    max_trade_size: Optional[float] = None
    decimals: Optional[int] = None

    def __post_init__(self):
        if (
            self.min_trade_size is not None
            and self.max_trade_size is not None
            and self.min_trade_size > self.max_trade_size
        ):
            raise ConfigurationError(
                f"{self.ticker}: min_trade_size ({self.min_trade_size}) "
                f"> max_trade_size ({self.max_trade_size})"
            )
        if self.decimals is not None and self.decimals < 0:
            raise ConfigurationError(f"{self.ticker}: decimals must be >= 0, got {self.decimals}")

    @property
    def policy_id(self) -> str:
        return split_unit(self.unit)[0]


class PolicyClassifier:
    """Map policy ids to categories by exact match."""

    def __init__(self, category_policies: Optional[Mapping[str, Iterable[str]]] = None):
        self._by_policy: Dict[str, Category] = {}
        for category_name, policies in (category_policies or {}).items():
            category = Category.parse(category_name)
            for policy_id in policies or []:
                policy_id = str(policy_id).strip().lower()
                if len(policy_id) != POLICY_ID_LENGTH:
                    raise ConfigurationError(
                        f"Policy id for {category.value} must be {POLICY_ID_LENGTH} hex chars: {policy_id!r}"
                    )
                previous = self._by_policy.get(policy_id)
                if previous is not None and previous != category:
                    raise ConfigurationError(
                        f"Policy {policy_id} mapped to both {previous.value} and {category.value}"
                    )
                self._by_policy[policy_id] = category

    def classify(self, unit: str) -> Optional[Category]:
        policy_id, _ = split_unit(unit)
        return self._by_policy.get(policy_id)

    def __call__(self, unit: str) -> Category:
        return self.classify(unit) or DEFAULT_CATEGORY


class TokenRegistry:
    """
    Configured trading tokens, in configured order.

    Unknown units get a fallback config: truncated ticker, classifier
    category and no size bounds (the gate applies its defaults).
    """

    def __init__(self, tokens: Iterable[TokenConfig], classifier: Optional[PolicyClassifier] = None):
        self.classifier = classifier or PolicyClassifier()
        self._tokens: List[TokenConfig] = []
        self._by_unit: Dict[str, TokenConfig] = {}
        self._by_ticker: Dict[str, TokenConfig] = {}
        for token in tokens:
            key = token.unit.lower()
            if key in self._by_unit:
                raise ConfigurationError(f"Duplicate token unit in config: {token.unit} ({token.ticker})")
            self._tokens.append(token)
            self._by_unit[key] = token
            self._by_ticker.setdefault(token.ticker.upper(), token)

    @classmethod
    def from_config(cls, tokens_cfg: dict, classifier: Optional[PolicyClassifier] = None) -> "TokenRegistry":
        tokens = []
        for raw in (tokens_cfg or {}).get("tokens", []) or []:
            tokens.append(
                TokenConfig(
                    unit=str(raw["unit"]).lower(),
                    ticker=str(raw["ticker"]),
                    category=Category.parse(raw.get("category", DEFAULT_CATEGORY.value)),
                    min_trade_size=raw.get("min_trade_size"),
                    max_trade_size=raw.get("max_trade_size"),
                    decimals=raw.get("decimals"),
                )
            )
        logger.info(f"Loaded {len(tokens)} configured trading tokens")
        return cls(tokens, classifier=classifier)

    def all(self) -> List[TokenConfig]:
        return list(self._tokens)

    def get(self, unit: str) -> Optional[TokenConfig]:
        return self._by_unit.get((unit or "").lower())

    def get_by_ticker(self, ticker: str) -> Optional[TokenConfig]:
        return self._by_ticker.get((ticker or "").upper())

    def by_category(self, category: Category) -> List[TokenConfig]:
        return [t for t in self._tokens if t.category == category]

    def resolve(self, unit: str, ticker: Optional[str] = None) -> TokenConfig:
        """Return the configured token, or a fallback config for unknown units."""
        configured = self.get(unit)
        if configured is not None:
            return configured
        return TokenConfig(
            unit=unit,
            ticker=ticker or f"{unit[:10]}...",
            category=self.classify(unit),
        )

    def classify(self, unit: str) -> Category:
        """TokenConfig category first, then policy classifier, then 'other'."""
        configured = self.get(unit)
        if configured is not None:
            return configured.category
        return self.classifier(unit)

    def __len__(self) -> int:
        return len(self._tokens)
