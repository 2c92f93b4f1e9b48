"""Console reporting of ranked opportunities."""
from datetime import datetime
from typing import Optional, Sequence
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.layout import Layout
from loguru import logger

from arbigraph.models import DetectionResult, Opportunity
from arbigraph.utils import format_percentage


class OpportunityMonitor:
    """Consumes detection results and displays them."""

    def __init__(self, console: Optional[Console] = None, max_rows: int = 10):
        """Initialise monitor."""
        self.console = console or Console()
        self.max_rows = max_rows
        self.latest_result: Optional[DetectionResult] = None
        self.total_opportunities_found = 0
        self.passes_completed = 0
        self.start_time = datetime.now()

    def update_result(self, result: DetectionResult):
        """Record the latest completed pass."""
        self.latest_result = result
        self.passes_completed += 1
        self.total_opportunities_found += len(result.opportunities)

    def create_dashboard(self, result: Optional[DetectionResult]) -> Layout:
        """Create rich dashboard layout."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="opportunities", ratio=2),
            Layout(name="stats", size=12),
        )

        runtime = datetime.now() - self.start_time
        header_text = (
            f"ARBIGRAPH - Cycle Arbitrage Monitor\n"
            f"Runtime: {runtime} | Passes: {self.passes_completed} | "
            f"Opportunities Found: {self.total_opportunities_found}"
        )
        layout["header"].update(Panel(header_text, style="bold cyan"))

        if result and result.opportunities:
            table = self.create_opportunities_table(result.opportunities[: self.max_rows])
            layout["opportunities"].update(Panel(table, title="Top Opportunities"))
        else:
            layout["opportunities"].update(
                Panel("No opportunities detected...", title="Top Opportunities")
            )

        layout["stats"].update(Panel(self.create_stats_table(result), title="Last Pass"))
        return layout

    def create_opportunities_table(self, opportunities: Sequence[Opportunity]) -> Table:
        table = Table(show_header=True, header_style="bold magenta")

        table.add_column("#", justify="right")
        table.add_column("Path", style="cyan")
        table.add_column("Hops", justify="right")
        table.add_column("Profit %", justify="right", style="green")
        table.add_column("Profit", justify="right", style="green")
        table.add_column("Cost", justify="right")
        table.add_column("Exchanges")

        for rank, opp in enumerate(opportunities, start=1):
            profit_color = "green" if opp.profit_percentage > 1.0 else "yellow"
            table.add_row(
                str(rank),
                opp.display_path(),
                str(opp.hops),
                f"[{profit_color}]{format_percentage(opp.profit_percentage)}[/]",
                f"[{profit_color}]{opp.profit_amount:.4f}[/]",
                f"{opp.cost_estimate:.4f}",
                ", ".join(sorted(set(opp.exchanges))),
            )

        return table

    def create_stats_table(self, result: Optional[DetectionResult]) -> Table:
        table = Table(show_header=False, box=None, padding=(0, 2))

        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="yellow")

        if result is None:
            table.add_row("Status", "waiting for first pass")
            return table

        stats = result.stats
        table.add_row("Snapshot", f"v{result.snapshot_version}")
        table.add_row("Edges admitted", str(stats.edges_admitted))
        table.add_row("Edges rejected", str(stats.edges_rejected))
        table.add_row("Edges skipped", str(stats.edges_skipped))
        table.add_row("Cycles found", str(stats.cycles_found))
        table.add_row("Cycles discarded", str(stats.cycles_discarded))
        table.add_row("Filtered", str(stats.opportunities_filtered))
        table.add_row("Duration", f"{stats.duration_ms:.1f} ms")

        return table

    def log_result(self, result: DetectionResult):
        """Log every opportunity of a pass, or that there were none."""
        if result.is_empty:
            logger.info(f"No opportunities on snapshot v{result.snapshot_version}")
            return
        for opp in result.opportunities:
            logger.success(
                f"Opportunity: {opp.display_path()} | "
                f"Profit: {format_percentage(opp.profit_percentage)} ({opp.profit_amount:.4f}) | "
                f"Cost: {opp.cost_estimate:.4f}"
            )
