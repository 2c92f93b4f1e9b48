"""Tests for data models and formatting helpers."""
import math
from datetime import datetime

import pytest

from arbigraph.models import Cycle, DetectionResult, Edge, Opportunity, PassStats, cycle_key
from arbigraph.utils import format_path, format_percentage, short_identity


class TestEdge:
    """Test derived edge values."""

    def test_effective_rate_and_weight(self):
        edge = Edge("A", "B", rate=2.0, fee=0.5, liquidity=0.0, timestamp=datetime.now())

        assert edge.effective_rate == 1.0
        assert edge.weight == pytest.approx(0.0)

    def test_profitable_hop_has_negative_weight(self):
        edge = Edge("A", "B", rate=4.0, fee=0.0, liquidity=0.0, timestamp=datetime.now())

        assert edge.weight == pytest.approx(-math.log(4.0))

    @pytest.mark.parametrize("rate", [0.0, -2.0, math.inf])
    def test_invalid_rate(self, rate):
        with pytest.raises(ValueError):
            Edge("A", "B", rate=rate, fee=0.0, liquidity=0.0, timestamp=datetime.now())


class TestCycle:
    """Test cycle identity."""

    def test_hops_and_distinct_tokens(self):
        cycle = Cycle(("A", "B", "C", "A"))

        assert cycle.hops == 3
        assert cycle.distinct_tokens == 3
        assert str(cycle) == "A → B → C → A"

    def test_rotations_share_key(self):
        assert Cycle(("B", "C", "A", "B")).key() == Cycle(("A", "B", "C", "A")).key() == ("A", "B", "C")
        assert cycle_key(("A", "C", "B", "A")) != cycle_key(("A", "B", "C", "A"))

    def test_rotated_to(self):
        assert Cycle(("B", "C", "A", "B")).rotated_to("A").tokens == ("A", "B", "C", "A")


class TestResults:
    """Test result containers."""

    def test_opportunity_equality_ignores_timestamp(self):
        fields = dict(
            tokens=("A", "B", "C", "A"),
            symbols=("A", "B", "C", "A"),
            exchanges=("x", "x", "x"),
            start_amount=1000.0,
            final_amount=1200.0,
            profit_amount=200.0,
            profit_percentage=20.0,
            cost_estimate=0.003,
        )

        first = Opportunity(timestamp=datetime(2024, 1, 1), **fields)
        second = Opportunity(timestamp=datetime(2025, 1, 1), **fields)

        assert first == second
        assert str(first) == "A → B → C → A | Profit: 20.0000% (200.0000)"
        assert first.to_dict()["tokens"] == ["A", "B", "C", "A"]

    def test_detection_result_helpers(self):
        result = DetectionResult(opportunities=(), stats=PassStats(), timestamp=datetime.now(), snapshot_version=0)

        assert result.is_empty
        assert result.best is None
        assert result.stats.to_dict()["cycles_found"] == 0


class TestFormatting:
    """Test display helpers."""

    def test_formatters(self):
        assert format_percentage(1.23456789) == "1.2346%"
        assert format_path(["SOL", "USDC", "SOL"]) == "SOL → USDC → SOL"

    def test_short_identity(self):
        assert short_identity("SOL") == "SOL"
        assert short_identity("So11111111111111111111111111111111111111112") == "So111111..."
