"""Tests for the monitoring module."""
from datetime import datetime
from io import StringIO

import pytest
from rich.console import Console
from rich.layout import Layout
from rich.table import Table

from arbigraph.models import DetectionResult, Opportunity, PassStats
from arbigraph.monitoring.monitor import OpportunityMonitor


class TestOpportunityMonitor:
    """Test suite for opportunity reporting."""

    @pytest.fixture
    def console(self):
        return Console(file=StringIO(), width=120)

    @pytest.fixture
    def monitor(self, console):
        return OpportunityMonitor(console)

    @pytest.fixture
    def sample_opportunity(self):
        return Opportunity(
            tokens=("sol-mint", "usdc-mint", "bonk-mint", "sol-mint"),
            symbols=("SOL", "USDC", "BONK", "SOL"),
            exchanges=("jupiter", "jupiter", "orca"),
            start_amount=1000.0,
            final_amount=1015.0,
            profit_amount=15.0,
            profit_percentage=1.5,
            cost_estimate=0.003,
            timestamp=datetime.now(),
        )

    @pytest.fixture
    def sample_result(self, sample_opportunity):
        return DetectionResult(
            opportunities=(sample_opportunity,),
            stats=PassStats(sources_searched=3, edges_admitted=6, cycles_found=3),
            timestamp=datetime.now(),
            snapshot_version=7,
        )

    @pytest.fixture
    def empty_result(self):
        return DetectionResult(
            opportunities=(),
            stats=PassStats(),
            timestamp=datetime.now(),
            snapshot_version=1,
        )

    def test_initialization(self, monitor):
        assert monitor.latest_result is None
        assert monitor.total_opportunities_found == 0
        assert monitor.passes_completed == 0

    def test_update_result(self, monitor, sample_result, empty_result):
        monitor.update_result(sample_result)
        monitor.update_result(empty_result)

        assert monitor.latest_result is empty_result
        assert monitor.passes_completed == 2
        assert monitor.total_opportunities_found == 1

    def test_create_dashboard_no_result(self, monitor, console):
        """The dashboard renders before the first pass completes."""
        layout = monitor.create_dashboard(None)

        assert isinstance(layout, Layout)
        console.print(layout)
        assert "waiting for first pass" in console.file.getvalue()

    def test_create_dashboard_with_opportunities(self, monitor, console, sample_result):
        monitor.update_result(sample_result)

        console.print(monitor.create_dashboard(sample_result))

        output = console.file.getvalue()
        assert "SOL → USDC → BONK → SOL" in output
        assert "1.5000%" in output

    def test_create_opportunities_table(self, monitor, sample_opportunity):
        table = monitor.create_opportunities_table([sample_opportunity])

        assert isinstance(table, Table)
        assert table.row_count == 1
        assert len(table.columns) == 7

    def test_create_stats_table(self, monitor, sample_result):
        table = monitor.create_stats_table(sample_result)

        assert table.row_count == 8

    def test_log_result(self, monitor, sample_result, empty_result):
        monitor.log_result(sample_result)
        monitor.log_result(empty_result)
