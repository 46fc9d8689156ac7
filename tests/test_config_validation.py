"""
Tests for configuration validation

Validates:
- Shipped config directory passes schema and sanity checks
- Target ratio, trade bound and token unit errors are reported
- Cross-file contradictions are caught before startup
"""

import shutil
from pathlib import Path

import pytest
import yaml

from tools.config_validator import (
    AppSchema,
    PortfolioSchema,
    TokensSchema,
    validate_all_configs,
    validate_sanity_checks,
)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

TALOS_UNIT = "97bbb7db0baef89caefce61b8107ac74c7a7340166b39d906f174bec54616c6f73"
TALOS_POLICY = TALOS_UNIT[:56]


@pytest.fixture
def config_dir(tmp_path):
    target = tmp_path / "config"
    shutil.copytree(CONFIG_DIR, target)
    return target


def load(config_dir, name):
    return yaml.safe_load((config_dir / name).read_text())


def dump(config_dir, name, data):
    (config_dir / name).write_text(yaml.safe_dump(data, sort_keys=False))


class TestShippedConfig:

    def test_repo_config_is_valid(self):
        assert validate_all_configs(str(CONFIG_DIR)) == []

    def test_copy_is_valid(self, config_dir):
        assert validate_all_configs(config_dir) == []


class TestSchemaErrors:

    def test_missing_file(self, config_dir):
        (config_dir / "tokens.yaml").unlink()
        errors = validate_all_configs(config_dir)
        assert any(e.startswith("tokens.yaml") and "not found" in e for e in errors)

    def test_malformed_yaml(self, config_dir):
        (config_dir / "app.yaml").write_text("app:\n  mode: [DRY_RUN\n")
        errors = validate_all_configs(config_dir)
        assert any("Invalid YAML" in e for e in errors)

    def test_ratios_must_sum_to_one(self, config_dir):
        portfolio = load(config_dir, "portfolio.yaml")
        portfolio["target_ratios"]["ada"] = 0.5
        dump(config_dir, "portfolio.yaml", portfolio)

        errors = validate_all_configs(config_dir)

        assert any("sum to 1.0" in e for e in errors)

    def test_missing_category_ratio(self, config_dir):
        portfolio = load(config_dir, "portfolio.yaml")
        portfolio["target_ratios"].pop("depin")
        portfolio["target_ratios"]["other"] = 0.15
        dump(config_dir, "portfolio.yaml", portfolio)

        assert any("Missing categories: depin" in e for e in validate_all_configs(config_dir))

    def test_min_above_max(self, config_dir):
        tokens = load(config_dir, "tokens.yaml")
        tokens["tokens"][0]["min_trade_size"] = 500
        dump(config_dir, "tokens.yaml", tokens)

        errors = validate_all_configs(config_dir)

        assert any("TALOS" in e and "min_trade_size" in e for e in errors)

    def test_duplicate_units(self, config_dir):
        tokens = load(config_dir, "tokens.yaml")
        duplicate = dict(tokens["tokens"][0], ticker="TALOS2")
        tokens["tokens"].append(duplicate)
        dump(config_dir, "tokens.yaml", tokens)

        assert any("Duplicate token unit" in e for e in validate_all_configs(config_dir))

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            AppSchema(app={"mode": "PAPER"})

    def test_defaults(self):
        app = AppSchema()
        assert app.app.mode == "DRY_RUN"
        assert app.loop.interval_seconds == 60
        assert app.execution.executor == "dry_run"

    def test_short_policy_rejected(self):
        ratios = load(CONFIG_DIR, "portfolio.yaml")["target_ratios"]
        with pytest.raises(ValueError):
            PortfolioSchema(target_ratios=ratios, category_policies={"ai": ["97bbb7db"]})

    def test_sizing_bounds(self):
        ratios = load(CONFIG_DIR, "portfolio.yaml")["target_ratios"]
        with pytest.raises(ValueError):
            PortfolioSchema(target_ratios=ratios, sizing={"default_min_trade_size": 600})

    def test_sizing_defaults(self):
        ratios = load(CONFIG_DIR, "portfolio.yaml")["target_ratios"]
        sizing = PortfolioSchema(target_ratios=ratios).sizing
        assert sizing.verify_sell_holdings is False
        assert sizing.decrement_snapshot_after_order is True

    @pytest.mark.parametrize("entry", [
        {"unit": "abc", "ticker": "X", "category": "ai", "min_trade_size": 1, "max_trade_size": 2},
        {"unit": "z" * 60, "ticker": "X", "category": "ai", "min_trade_size": 1, "max_trade_size": 2},
        {"unit": TALOS_UNIT, "ticker": "X", "category": "nft", "min_trade_size": 1, "max_trade_size": 2},
        {"unit": TALOS_UNIT, "ticker": "X", "category": "ai", "min_trade_size": 0, "max_trade_size": 2},
        {"unit": TALOS_UNIT, "ticker": "X", "category": "ai", "min_trade_size": 1, "max_trade_size": 2,
         "decimals": -1},
    ])
    def test_bad_token_entries(self, entry):
        with pytest.raises(ValueError):
            TokensSchema(tokens=[entry])


class TestSanityChecks:

    def test_token_category_contradicts_policy(self, config_dir):
        portfolio = load(config_dir, "portfolio.yaml")
        portfolio["category_policies"]["ai"] = []
        portfolio["category_policies"]["defi"].append(TALOS_POLICY)
        dump(config_dir, "portfolio.yaml", portfolio)

        errors = validate_sanity_checks(config_dir)

        assert any("CONTRADICTION" in e and "TALOS" in e for e in errors)

    def test_policy_in_two_categories(self, config_dir):
        portfolio = load(config_dir, "portfolio.yaml")
        portfolio["category_policies"]["gaming"].append(TALOS_POLICY)
        dump(config_dir, "portfolio.yaml", portfolio)

        errors = validate_sanity_checks(config_dir)

        assert any("mapped to both" in e for e in errors)

    def test_max_below_dust(self, config_dir):
        portfolio = load(config_dir, "portfolio.yaml")
        portfolio["sizing"]["dust_threshold_ada"] = 250
        dump(config_dir, "portfolio.yaml", portfolio)

        errors = validate_sanity_checks(config_dir)

        assert any(e.startswith("UNSAFE") for e in errors)

    def test_live_swap_service_needs_url(self, config_dir):
        app = load(config_dir, "app.yaml")
        app["app"]["mode"] = "LIVE"
        app["execution"]["executor"] = "swap_service"
        dump(config_dir, "app.yaml", app)

        assert any(e.startswith("MISSING") for e in validate_all_configs(config_dir))

        app["execution"]["swap_service_url"] = "https://signer.local"
        dump(config_dir, "app.yaml", app)
        assert validate_all_configs(config_dir) == []

    def test_predefined_list_needs_tokens(self, config_dir):
        dump(config_dir, "tokens.yaml", {"tokens": []})
        assert any(e.startswith("INCOMPLETE") for e in validate_all_configs(config_dir))

    def test_top_volume_without_tokens_is_fine(self, config_dir):
        app = load(config_dir, "app.yaml")
        app["universe"]["source"] = "TOP_VOLUME"
        dump(config_dir, "app.yaml", app)
        dump(config_dir, "tokens.yaml", {"tokens": []})

        assert validate_all_configs(config_dir) == []
