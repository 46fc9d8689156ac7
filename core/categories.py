"""
Portfolio categories and target allocation ratios.

Categories are a closed set. Adding one means adding a ratio for it in
portfolio.yaml, otherwise startup validation fails.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping
import logging

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RATIO_SUM_TOLERANCE = 1e-6


class Category(str, Enum):
    ADA = "ada"
    STABLE = "stable"
    DEFI = "defi"
    AI = "ai"
    GAMING = "gaming"
    MEME_COINS = "meme_coins"
    DEPIN = "depin"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "Category":
        """Accept a Category or its string value; raise ConfigurationError otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise ConfigurationError(f"Unknown category '{value}' (allowed: {allowed})")


DEFAULT_CATEGORY = Category.OTHER


class TargetRatios:
    """
    Immutable mapping of Category -> max fraction of total portfolio value.

    Every category must be present, every ratio must be in [0, 1], and the
    ratios must sum to 1 within RATIO_SUM_TOLERANCE.
    """

    def __init__(self, ratios: Mapping):
        parsed: Dict[Category, float] = {}
        for key, value in ratios.items():
            category = Category.parse(key)
            try:
                ratio = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Target ratio for {category.value} is not a number: {value!r}")
            if not 0.0 <= ratio <= 1.0:
                raise ConfigurationError(
                    f"Target ratio for {category.value} must be within [0, 1], got {ratio}"
                )
            parsed[category] = ratio

        missing = [c.value for c in Category if c not in parsed]
        if missing:
            raise ConfigurationError(f"Target ratios missing categories: {', '.join(missing)}")

        total = sum(parsed.values())
        if abs(total - 1.0) > RATIO_SUM_TOLERANCE:
            raise ConfigurationError(f"Target ratios must sum to 1, got {total:.6f}")

        self._ratios = MappingProxyType(parsed)

    def __getitem__(self, category: Category) -> float:
        return self._ratios[Category.parse(category)]

    def as_dict(self) -> Dict[str, float]:
        return {c.value: r for c, r in self._ratios.items()}

    def __repr__(self) -> str:
        return f"TargetRatios({self.as_dict()})"
