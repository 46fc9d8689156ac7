"""
Tests for token config, unit parsing, category ratios and policy classification
"""

import pytest

from core.categories import Category, TargetRatios
from core.exceptions import ConfigurationError
from core.tokens import POLICY_ID_LENGTH, PolicyClassifier, TokenConfig, TokenRegistry, split_unit
from tests.helpers import DEFAULT_RATIOS, DJED_UNIT, RAD_UNIT, TALOS_UNIT, make_registry

TALOS_POLICY = TALOS_UNIT[:POLICY_ID_LENGTH]


class TestSplitUnit:

    def test_policy_and_name(self):
        policy, name = split_unit(TALOS_UNIT)
        assert policy == TALOS_POLICY
        assert name == "54616c6f73"

    def test_normalises_case(self):
        assert split_unit(TALOS_UNIT.upper()) == split_unit(TALOS_UNIT)

    def test_policy_only_unit(self):
        assert split_unit(TALOS_POLICY) == (TALOS_POLICY, "")


class TestClassifier:

    def test_exact_policy_match(self):
        classifier = PolicyClassifier({"ai": [TALOS_POLICY]})
        assert classifier.classify(TALOS_UNIT) == Category.AI

    def test_unmapped_policy_is_none_and_other(self):
        classifier = PolicyClassifier({"ai": [TALOS_POLICY]})
        assert classifier.classify(RAD_UNIT) is None
        assert classifier(RAD_UNIT) == Category.OTHER

    def test_substring_of_unit_does_not_match(self):
        """A policy id that only appears inside another unit's asset name must not classify it."""
        name_as_policy = ("00" * 28)
        unit = "ff" * 28 + name_as_policy
        classifier = PolicyClassifier({"defi": [name_as_policy]})
        assert classifier.classify(unit) is None

    def test_short_policy_rejected(self):
        with pytest.raises(ConfigurationError):
            PolicyClassifier({"ai": ["97bbb7db"]})

    def test_policy_in_two_categories_rejected(self):
        with pytest.raises(ConfigurationError):
            PolicyClassifier({"ai": [TALOS_POLICY], "gaming": [TALOS_POLICY]})

    def test_unknown_category_rejected(self):
        with pytest.raises(ConfigurationError):
            PolicyClassifier({"nft": [TALOS_POLICY]})


class TestTokenConfig:

    def test_min_above_max_rejected(self):
        with pytest.raises(ConfigurationError):
            TokenConfig(TALOS_UNIT, "TALOS", Category.AI, min_trade_size=300, max_trade_size=200)

    def test_negative_decimals_rejected(self):
        with pytest.raises(ConfigurationError):
            TokenConfig(TALOS_UNIT, "TALOS", decimals=-1)

    def test_policy_id(self):
        assert TokenConfig(TALOS_UNIT, "TALOS").policy_id == TALOS_POLICY


class TestRegistry:

    def test_preserves_configured_order(self):
        assert [t.ticker for t in make_registry().all()] == ["TALOS", "RAD", "DJED", "SNEK"]

    def test_lookup_case_insensitive(self):
        registry = make_registry()
        assert registry.get(TALOS_UNIT.upper()).ticker == "TALOS"
        assert registry.get_by_ticker("djed").unit == DJED_UNIT

    def test_duplicate_unit_rejected(self):
        with pytest.raises(ConfigurationError):
            TokenRegistry([TokenConfig(TALOS_UNIT, "TALOS"), TokenConfig(TALOS_UNIT, "TALOS2")])

    def test_resolve_unknown_unit_gets_fallback(self):
        unit = "ab" * 28 + "464f4f"
        registry = make_registry(category_policies={"depin": ["ab" * 28]})

        cfg = registry.resolve(unit)

        assert cfg.ticker == f"{unit[:10]}..."
        assert cfg.category == Category.DEPIN
        assert cfg.min_trade_size is None and cfg.max_trade_size is None

    def test_resolve_keeps_listing_ticker(self):
        assert make_registry().resolve("ab" * 30, ticker="FOO").ticker == "FOO"

    def test_configured_category_wins_over_classifier(self):
        registry = make_registry(category_policies={"defi": [TALOS_POLICY]})
        assert registry.classify(TALOS_UNIT) == Category.AI

    def test_from_config(self):
        cfg = {"tokens": [
            {"ticker": "TALOS", "unit": TALOS_UNIT.upper(), "category": "ai",
             "min_trade_size": 10, "max_trade_size": 200},
            {"ticker": "DJED", "unit": DJED_UNIT, "category": "stable", "decimals": 6},
        ]}

        registry = TokenRegistry.from_config(cfg)

        assert len(registry) == 2
        assert registry.get(TALOS_UNIT).unit == TALOS_UNIT
        assert registry.get(DJED_UNIT).decimals == 6
        assert registry.by_category(Category.AI)[0].max_trade_size == 200

    def test_from_config_unknown_category(self):
        with pytest.raises(ConfigurationError):
            TokenRegistry.from_config({"tokens": [{"ticker": "X", "unit": TALOS_UNIT, "category": "nft"}]})


class TestTargetRatios:

    def test_valid_ratios(self):
        ratios = TargetRatios(DEFAULT_RATIOS)
        assert ratios[Category.AI] == 0.15
        assert ratios["meme_coins"] == 0.10
        assert ratios.as_dict() == DEFAULT_RATIOS

    def test_missing_category_rejected(self):
        values = dict(DEFAULT_RATIOS)
        values.pop("depin")
        values["other"] += 0.10
        with pytest.raises(ConfigurationError, match="depin"):
            TargetRatios(values)

    def test_sum_must_be_one(self):
        with pytest.raises(ConfigurationError, match="sum"):
            TargetRatios(dict(DEFAULT_RATIOS, ada=0.30))

    def test_ratio_out_of_range(self):
        with pytest.raises(ConfigurationError):
            TargetRatios(dict(DEFAULT_RATIOS, ada=1.2, stable=-0.85))

    def test_unknown_category_rejected(self):
        with pytest.raises(ConfigurationError):
            TargetRatios(dict(DEFAULT_RATIOS, nft=0.0))

    def test_category_parse(self):
        assert Category.parse(" AI ") == Category.AI
        assert Category.parse(Category.DEFI) is Category.DEFI
        with pytest.raises(ConfigurationError):
            Category.parse("nft")
