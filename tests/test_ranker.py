"""Tests for opportunity deduplication, filtering and ordering."""
from datetime import datetime

import pytest

from arbigraph.config import AcceptanceBand
from arbigraph.core.ranker import OpportunityRanker
from arbigraph.events import TraceEventType
from arbigraph.models import Opportunity


def make_opportunity(tokens, pct, cost_per_hop=0.001, start=1000.0):
    tokens = tuple(tokens)
    profit = start * pct / 100
    return Opportunity(
        tokens=tokens,
        symbols=tokens,
        exchanges=("test-dex",) * (len(tokens) - 1),
        start_amount=start,
        final_amount=start + profit,
        profit_amount=profit,
        profit_percentage=pct,
        cost_estimate=(len(tokens) - 1) * cost_per_hop,
        timestamp=datetime.now(),
    )


class TestOpportunityRanker:
    """Test suite for the opportunity ranker."""

    @pytest.fixture
    def ranker(self, tracer):
        return OpportunityRanker(AcceptanceBand(min_profit_pct=0.05, max_profit_pct=50.0), tracer=tracer)

    def test_sorted_by_profit_descending(self, ranker):
        """Opportunities at 1%, 5% and 3% come out as 5%, 3%, 1%."""
        opportunities = [
            make_opportunity("ABCA", 1.0),
            make_opportunity("ABDA", 5.0),
            make_opportunity("ACDA", 3.0),
        ]

        ranked = ranker.rank(opportunities)

        assert [o.profit_percentage for o in ranked] == [5.0, 3.0, 1.0]

    def test_rotations_are_duplicates(self, ranker):
        """The same loop reported from two member tokens is kept once."""
        report = ranker.rank_detailed([
            make_opportunity("ABCA", 2.0),
            make_opportunity("BCAB", 2.0),
            make_opportunity("CABC", 2.0),
        ])

        assert len(report.opportunities) == 1
        assert report.opportunities[0].tokens == ("A", "B", "C", "A")
        assert report.duplicates_removed == 2

    def test_reverse_direction_is_not_duplicate(self, ranker):
        ranked = ranker.rank([make_opportunity("ABCA", 2.0), make_opportunity("ACBA", 1.0)])

        assert len(ranked) == 2

    def test_below_minimum_filtered(self, tracer, recorder):
        ranker = OpportunityRanker(AcceptanceBand(min_profit_pct=0.001, max_profit_pct=50.0), tracer=tracer)

        report = ranker.rank_detailed([make_opportunity("ABCA", 0.0009)])

        assert report.opportunities == ()
        assert report.filtered == 1
        event = recorder.of_kind(TraceEventType.OPPORTUNITY_FILTERED)[0]
        assert event.data["reason"] == "below_min"

    def test_above_maximum_filtered(self, ranker, recorder):
        """A 120% loop is treated as bad data."""
        report = ranker.rank_detailed([make_opportunity("ABCA", 120.0), make_opportunity("ABDA", 10.0)])

        assert [o.profit_percentage for o in report.opportunities] == [10.0]
        assert recorder.of_kind(TraceEventType.OPPORTUNITY_FILTERED)[0].data["reason"] == "above_max"

    def test_losses_filtered(self, ranker):
        assert ranker.rank([make_opportunity("ABCA", -2.0)]) == ()

    def test_band_edges_are_inclusive(self, ranker):
        ranked = ranker.rank([make_opportunity("ABCA", 0.05), make_opportunity("ABDA", 50.0)])

        assert len(ranked) == 2

    def test_ties_prefer_fewer_hops(self, ranker):
        ranked = ranker.rank([make_opportunity("ABCDA", 2.0), make_opportunity("ABCA", 2.0)])

        assert [o.hops for o in ranked] == [3, 4]

    def test_ties_prefer_lower_cost_then_tokens(self, ranker):
        ranked = ranker.rank([
            make_opportunity("ACDA", 2.0),
            make_opportunity("ABDA", 2.0, cost_per_hop=0.002),
            make_opportunity("ABCA", 2.0),
        ])

        assert [o.tokens for o in ranked] == [
            ("A", "B", "C", "A"),
            ("A", "C", "D", "A"),
            ("A", "B", "D", "A"),
        ]

    def test_max_results_truncates(self, tracer):
        ranker = OpportunityRanker(
            AcceptanceBand(min_profit_pct=0.05, max_profit_pct=50.0, max_results=2), tracer=tracer
        )

        ranked = ranker.rank([
            make_opportunity("ABCA", 1.0),
            make_opportunity("ABDA", 4.0),
            make_opportunity("ACDA", 3.0),
        ])

        assert [o.profit_percentage for o in ranked] == [4.0, 3.0]

    def test_empty_input(self, ranker):
        report = ranker.rank_detailed([])

        assert report.opportunities == ()
        assert report.duplicates_removed == 0
        assert report.filtered == 0
