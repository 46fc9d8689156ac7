"""
Tests for PortfolioValuationEngine and PortfolioSnapshot

Validates:
- Per-category ADA values from holdings, decimals and prices
- Missing/zero prices and failed decimals lookups degrade to zero
- Snapshot total invariant and immutability
- with_order moves value between ada and the order's category
"""

import math

import pytest
from hypothesis import given, strategies as st

from core.categories import Category
from core.orders import SizedOrder
from core.valuation import Holding, PortfolioSnapshot, PortfolioValuationEngine, log_portfolio_breakdown
from tests.helpers import DJED_UNIT, RAD_UNIT, SNEK_UNIT, TALOS_UNIT, FakeMetadata, make_registry
from tests.helpers.market_stubs import address, ratios

UNKNOWN_UNIT = "ab" * 28 + "464f4f"
MAPPED_UNIT = "cd" * 28 + "424152"


@pytest.fixture
def engine():
    metadata = FakeMetadata({TALOS_UNIT: 6, RAD_UNIT: 6, UNKNOWN_UNIT: 0, MAPPED_UNIT: 2})
    registry = make_registry(category_policies={"depin": ["cd" * 28]})
    return PortfolioValuationEngine(registry, metadata=metadata)


class TestValuation:

    def test_ada_only(self, engine):
        snap = engine.value([], ada_balance=250.0, prices={})
        assert snap.value_of(Category.ADA) == 250
        assert snap.total_ada_value == 250

    def test_values_configured_tokens(self, engine):
        holdings = [
            Holding(TALOS_UNIT, 2_000_000),         # 2 TALOS (6 decimals, via metadata)
            Holding(DJED_UNIT, 10_000_000),         # 10 DJED (6 decimals, configured)
            Holding(SNEK_UNIT, 1000),               # 1000 SNEK (0 decimals, configured)
        ]
        prices = {TALOS_UNIT: 5.0, DJED_UNIT: 3.0, SNEK_UNIT: 0.01}

        snap = engine.value(holdings, ada_balance=100.0, prices=prices)

        assert snap.value_of(Category.AI) == pytest.approx(10.0)
        assert snap.value_of(Category.STABLE) == pytest.approx(30.0)
        assert snap.value_of(Category.MEME_COINS) == pytest.approx(10.0)
        assert snap.total_ada_value == pytest.approx(150.0)
        assert snap.held_value(TALOS_UNIT) == pytest.approx(10.0)

    def test_zero_and_missing_price_skipped(self, engine):
        holdings = [Holding(TALOS_UNIT, 1_000_000), Holding(RAD_UNIT, 1_000_000)]
        snap = engine.value(holdings, ada_balance=50.0, prices={TALOS_UNIT: 0.0})
        assert snap.total_ada_value == 50.0
        assert snap.value_of(Category.AI) == 0

    def test_unparsable_price_skipped(self, engine):
        snap = engine.value([Holding(TALOS_UNIT, 1_000_000)], ada_balance=1.0, prices={TALOS_UNIT: "n/a"})
        assert snap.total_ada_value == 1.0

    @pytest.mark.parametrize("bad_price", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_price_skipped_and_logged(self, engine, caplog, bad_price):
        holdings = [Holding(TALOS_UNIT, 1_000_000), Holding(SNEK_UNIT, 1000)]

        snap = engine.value(holdings, ada_balance=50.0, prices={TALOS_UNIT: bad_price, SNEK_UNIT: 0.01})

        assert snap.value_of(Category.AI) == 0
        assert snap.total_ada_value == pytest.approx(60.0)
        assert math.isfinite(snap.total_ada_value)
        assert f"Non-finite price for {TALOS_UNIT}" in caplog.text

    def test_unparsable_price_logged(self, engine, caplog):
        engine.value([Holding(TALOS_UNIT, 1_000_000)], ada_balance=1.0, prices={TALOS_UNIT: "n/a"})
        assert f"Unusable price for {TALOS_UNIT}: 'n/a'" in caplog.text

    def test_missing_price_logged(self, engine, caplog):
        with caplog.at_level("DEBUG", logger="core.valuation"):
            engine.value([Holding(RAD_UNIT, 1_000_000)], ada_balance=1.0, prices={})
        assert f"No price for {RAD_UNIT}" in caplog.text

    def test_unknown_token_uses_classifier(self, engine):
        snap = engine.value([Holding(MAPPED_UNIT, 500)], ada_balance=0.0, prices={MAPPED_UNIT: 2.0})
        assert snap.value_of(Category.DEPIN) == pytest.approx(10.0)

    def test_unknown_unmapped_token_is_other(self, engine):
        snap = engine.value([Holding(UNKNOWN_UNIT, 7)], ada_balance=0.0, prices={UNKNOWN_UNIT: 1.0})
        assert snap.value_of(Category.OTHER) == pytest.approx(7.0)

    def test_failed_decimals_lookup_degrades_to_zero(self):
        metadata = FakeMetadata({RAD_UNIT: 6}, failing=[TALOS_UNIT])
        engine = PortfolioValuationEngine(make_registry(), metadata=metadata)
        holdings = [Holding(TALOS_UNIT, 1_000_000), Holding(RAD_UNIT, 1_000_000)]

        snap = engine.value(holdings, ada_balance=10.0, prices={TALOS_UNIT: 5.0, RAD_UNIT: 2.0})

        assert snap.value_of(Category.AI) == 0
        assert snap.value_of(Category.GAMING) == pytest.approx(2.0)
        assert snap.total_ada_value == pytest.approx(12.0)

    def test_configured_decimals_skip_metadata(self, engine):
        engine.value([Holding(DJED_UNIT, 1_000_000)], ada_balance=0.0, prices={DJED_UNIT: 1.0})
        assert DJED_UNIT not in engine.metadata.calls

    def test_holding_decimals_take_precedence(self, engine):
        snap = engine.value([Holding(TALOS_UNIT, 100, decimals=2)], ada_balance=0.0, prices={TALOS_UNIT: 1.0})
        assert snap.value_of(Category.AI) == pytest.approx(1.0)
        assert TALOS_UNIT not in engine.metadata.calls

    def test_classifier_failure_falls_back_to_other(self, engine):
        def broken(_unit):
            raise RuntimeError("classifier down")

        snap = engine.value([Holding(UNKNOWN_UNIT, 3)], ada_balance=0.0, prices={UNKNOWN_UNIT: 1.0},
                            classify=broken)
        assert snap.value_of(Category.OTHER) == pytest.approx(3.0)

    def test_value_address(self, engine):
        info = address(5_000_000, {TALOS_UNIT: 1_000_000})
        snap = engine.value_address(info, {TALOS_UNIT: 4.0})
        assert snap.ada_balance == pytest.approx(5.0)
        assert snap.value_of(Category.AI) == pytest.approx(4.0)


class TestSnapshot:

    def test_every_category_present(self):
        snap = PortfolioSnapshot.from_values({"ada": 10})
        assert set(snap.category_values) == set(Category)

    def test_inconsistent_total_rejected(self):
        with pytest.raises(ValueError):
            PortfolioSnapshot(category_values={Category.ADA: 10.0}, total_ada_value=11.0)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf")])
    def test_non_finite_values_rejected(self, bad):
        with pytest.raises(ValueError, match="finite"):
            PortfolioSnapshot.from_values({"ada": 10, "ai": bad})

    def test_immutable(self):
        snap = PortfolioSnapshot.from_values({"ada": 10})
        with pytest.raises(TypeError):
            snap.category_values[Category.ADA] = 0

    def test_share_of_empty_portfolio(self):
        assert PortfolioSnapshot.from_values({}).share_of(Category.AI) == 0.0

    def test_buy_moves_value_from_ada(self):
        snap = PortfolioSnapshot.from_values({"ada": 100, "ai": 50})
        after = snap.with_order(SizedOrder("buy", 30, TALOS_UNIT, "TALOS", Category.AI))

        assert after.ada_balance == pytest.approx(70)
        assert after.value_of(Category.AI) == pytest.approx(80)
        assert after.total_ada_value == pytest.approx(snap.total_ada_value)
        assert snap.ada_balance == 100
        assert after.held_value(TALOS_UNIT) == pytest.approx(30)

    def test_sell_moves_value_to_ada(self):
        snap = PortfolioSnapshot.from_values({"ada": 100, "ai": 50}, holding_values={TALOS_UNIT: 50})
        after = snap.with_order(SizedOrder("sell", 80, TALOS_UNIT, "TALOS", Category.AI))

        assert after.value_of(Category.AI) == 0
        assert after.ada_balance == pytest.approx(150)
        assert after.held_value(TALOS_UNIT) == 0

    def test_skip_order_returns_same_snapshot(self):
        snap = PortfolioSnapshot.from_values({"ada": 100})
        assert snap.with_order(SizedOrder("buy", 0, TALOS_UNIT, "TALOS", Category.AI)) is snap

    def test_breakdown_lines(self):
        snap = PortfolioSnapshot.from_values({"ada": 75, "ai": 25})
        lines = log_portfolio_breakdown(snap, ratios())
        assert lines[-1] == "[PORTFOLIO] Total Value: 100.00 ADA"
        assert any(line.strip().startswith("ai") and "25.00%" in line for line in lines)

    @given(st.dictionaries(
        st.sampled_from([c.value for c in Category]),
        st.floats(min_value=0, max_value=1e9, allow_nan=False, allow_infinity=False),
    ))
    def test_total_equals_sum_of_categories(self, values):
        snap = PortfolioSnapshot.from_values(values)
        expected = math.fsum(snap.category_values.values())
        assert abs(snap.total_ada_value - expected) <= 1e-6 * max(1.0, expected)
