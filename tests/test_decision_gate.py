"""
Tests for DecisionGate

Validates:
- trade=false and low confidence are rejected
- Size clamping into [min_trade_size, max_trade_size]
- Default bounds for unconfigured tokens
- Malformed recommendations treated as no-trade
"""

import pytest
from hypothesis import given, strategies as st

from core.categories import Category
from core.decision_gate import DecisionGate
from core.orders import TradeRecommendation
from core.tokens import TokenConfig
from tests.helpers import TALOS_UNIT, rec


@pytest.fixture
def gate():
    return DecisionGate(confidence_threshold=0.6)


@pytest.fixture
def talos():
    return TokenConfig(TALOS_UNIT, "TALOS", Category.AI, min_trade_size=10, max_trade_size=200)


class TestRejections:

    def test_no_trade_rejected(self, gate, talos):
        result = gate.evaluate(rec(trade=False, confidence=0.99), talos)
        assert not result.approved
        assert result.reason == "no_trade"

    @pytest.mark.parametrize("direction", ["buy", "sell"])
    @pytest.mark.parametrize("size", [0, 5, 100, 10_000])
    def test_low_confidence_rejected_regardless_of_size(self, gate, talos, direction, size):
        """confidence 0.4 is rejected for every direction and size."""
        result = gate.evaluate(rec(direction=direction, confidence=0.4, size=size), talos)
        assert result.order is None
        assert result.reason == "low_confidence"

    def test_threshold_is_inclusive(self, gate, talos):
        assert gate.gate(rec(confidence=0.6), talos) is not None

    def test_per_call_threshold_override(self, gate, talos):
        assert gate.gate(rec(confidence=0.7), talos, confidence_threshold=0.8) is None

    def test_none_recommendation_is_malformed(self, gate, talos):
        result = gate.evaluate(None, talos)
        assert result.reason == "malformed"

    def test_invalid_direction_is_malformed(self, gate, talos):
        bad = TradeRecommendation(direction="hodl", trade=True, confidence=0.9, proposed_size=50)
        assert gate.evaluate(bad, talos).reason == "malformed"

    def test_nan_confidence_rejected(self, gate, talos):
        assert gate.gate(rec(confidence=float("nan")), talos) is None

    def test_reject_default_never_passes(self, gate, talos):
        assert gate.gate(TradeRecommendation.reject("parse_error"), talos) is None


class TestClamping:

    def test_size_within_bounds_kept(self, gate, talos):
        order = gate.gate(rec(size=120), talos)
        assert order.amount_ada == 120
        assert order.unit == TALOS_UNIT
        assert order.category == Category.AI
        assert order.ticker == "TALOS"

    def test_size_clamped_to_max(self, gate, talos):
        assert gate.gate(rec(size=5000), talos).amount_ada == 200

    def test_size_clamped_to_min(self, gate, talos):
        assert gate.gate(rec(size=3), talos).amount_ada == 10

    def test_zero_size_falls_back_to_min(self, gate, talos):
        assert gate.gate(rec(size=0), talos).amount_ada == 10

    def test_defaults_for_unconfigured_token(self, gate):
        unknown = TokenConfig(TALOS_UNIT, "97bbb7db0b...", Category.OTHER)
        assert gate.gate(rec(size=1), unknown).amount_ada == 50
        assert gate.gate(rec(size=10_000), unknown).amount_ada == 500

    def test_direction_preserved(self, gate, talos):
        assert gate.gate(rec(direction="sell", size=50), talos).direction == "sell"

    def test_inverted_defaults_rejected(self):
        with pytest.raises(ValueError):
            DecisionGate(default_min_trade_size=600, default_max_trade_size=500)

    @given(
        size=st.floats(min_value=-1e6, max_value=1e9, allow_nan=False),
        confidence=st.floats(min_value=0, max_value=1),
        direction=st.sampled_from(["buy", "sell"]),
    )
    def test_output_always_within_bounds(self, size, confidence, direction):
        gate = DecisionGate(confidence_threshold=0.6)
        cfg = TokenConfig(TALOS_UNIT, "TALOS", Category.AI, min_trade_size=10, max_trade_size=200)

        order = gate.gate(rec(direction=direction, confidence=confidence, size=size), cfg)

        if confidence < 0.6:
            assert order is None
        else:
            assert 10 <= order.amount_ada <= 200
