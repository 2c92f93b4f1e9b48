"""Orchestrates one detection pass over the token graph."""
import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional
from loguru import logger

from arbigraph.config import ArbigraphConfig
from arbigraph.core.cycle_detector import CycleDetector, SearchOutcome
from arbigraph.core.profit_evaluator import ProfitEvaluator
from arbigraph.core.rate_sources import RateSource
from arbigraph.core.ranker import OpportunityRanker
from arbigraph.core.token_graph import GraphSnapshot, TokenGraph
from arbigraph.events import NullTracer, Tracer, TraceEventType
from arbigraph.infrastructure.error_handling import (
    CircuitBreaker,
    ConfigurationError,
    ErrorHandler,
    PassCancelledError,
)
from arbigraph.infrastructure.performance import PerformanceMonitor, performance_monitor
from arbigraph.models import DetectionResult, Opportunity, PassStats, Token


class DetectionEngine:
    """Refreshes the graph, searches every token and ranks the results."""

    def __init__(
        self,
        config: ArbigraphConfig,
        rate_source: Optional[RateSource] = None,
        tracer: Optional[Tracer] = None,
        error_handler: Optional[ErrorHandler] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        """Initialise the engine; configuration problems are raised here."""
        if not config.tokens:
            raise ConfigurationError("token universe must not be empty")
        if config.search.hop_limit <= 0:
            raise ConfigurationError("hop limit must be positive")
        if config.acceptance.min_profit_pct >= config.acceptance.max_profit_pct:
            raise ConfigurationError("acceptance band minimum must be below its maximum")

        self.config = config
        self.rate_source = rate_source
        self.tracer = tracer or NullTracer()
        self.errors = error_handler or ErrorHandler()
        self.performance = monitor or performance_monitor
        self.source_breaker: CircuitBreaker = self.errors.get_circuit_breaker("rate_source")

        self.graph = TokenGraph(config.fees, tracer=self.tracer)
        self.graph.configure_tokens(
            Token(t.identity, t.symbol, t.decimals, t.price_id) for t in config.tokens
        )
        self.detector = CycleDetector(config.search, tracer=self.tracer)
        self.evaluator = ProfitEvaluator(
            config.evaluation, symbol_of=self.graph.symbol, tracer=self.tracer
        )
        self.ranker = OpportunityRanker(config.acceptance, tracer=self.tracer)

    async def refresh(self) -> GraphSnapshot:
        """Pull a full quote snapshot and install it.

        If the source fails the previous snapshot remains active and the
        error propagates to the caller.
        """
        if self.rate_source is None:
            raise ConfigurationError("no rate source configured")

        with self.performance.measure("refresh"):
            quotes = await self.source_breaker.call_async(self.rate_source.fetch_quotes)
            snapshot = self.graph.replace_edges(quotes)

        self.errors.record_error("edge_rejected", snapshot.rejected)
        if snapshot.is_empty():
            logger.warning("Refresh produced no usable edges")
        else:
            logger.info(
                f"Snapshot v{snapshot.version}: {len(snapshot)} edges "
                f"({snapshot.rejected} rejected)"
            )
        return snapshot

    def detect(self, cancel_event: Optional[threading.Event] = None) -> DetectionResult:
        """Search every token in the current snapshot and rank what is found.

        Raises PassCancelledError if ``cancel_event`` is set before all
        per-source searches have finished.
        """
        snapshot = self.graph.snapshot()
        stats = PassStats(
            edges_admitted=len(snapshot),
            edges_rejected=snapshot.rejected,
        )
        timestamp = datetime.now()

        with self.performance.measure("detection_pass") as timer:
            outcomes = self._search_all(snapshot, cancel_event)

            candidates: List[Opportunity] = []
            for outcome in outcomes:
                stats.sources_searched += 1
                stats.edges_skipped = max(stats.edges_skipped, outcome.edges_skipped)
                stats.cycles_discarded += outcome.discarded
                stats.cycles_found += len(outcome.cycles)
                for cycle in outcome.cycles:
                    opportunity = self.evaluator.evaluate(
                        cycle, self.graph.snapshot(), timestamp=timestamp
                    )
                    if opportunity is None:
                        stats.cycles_stale += 1
                        continue
                    candidates.append(opportunity)

            stats.opportunities_evaluated = len(candidates)
            report = self.ranker.rank_detailed(candidates)
            stats.duplicates_removed = report.duplicates_removed
            stats.opportunities_filtered = report.filtered

        stats.duration_ms = timer.duration * 1000
        self.errors.record_error("cycle_discarded", stats.cycles_discarded)
        self.errors.record_error("cycle_stale", stats.cycles_stale)

        result = DetectionResult(
            opportunities=report.opportunities,
            stats=stats,
            timestamp=timestamp,
            snapshot_version=snapshot.version,
        )
        best = result.best
        self.performance.record_pass(
            stats, len(result.opportunities), best.profit_percentage if best else None
        )
        self.tracer.emit(
            TraceEventType.PASS_COMPLETED,
            snapshot_version=snapshot.version,
            opportunities=len(result.opportunities),
        )
        logger.info(
            f"Pass on snapshot v{snapshot.version}: {stats.cycles_found} cycles, "
            f"{len(result.opportunities)} opportunities in {stats.duration_ms:.1f}ms"
        )
        return result

    async def run_pass(self, cancel_event: Optional[threading.Event] = None) -> DetectionResult:
        """Refresh from the rate source, then detect."""
        await self.refresh()
        return await asyncio.to_thread(self.detect, cancel_event)

    def _search_all(
        self, snapshot: GraphSnapshot, cancel_event: Optional[threading.Event]
    ) -> List[SearchOutcome]:
        sources = [t.identity for t in self.graph.tokens]
        workers = self.config.search.search_workers

        def search_one(source: str) -> Optional[SearchOutcome]:
            if cancel_event is not None and cancel_event.is_set():
                return None
            with self.performance.measure("cycle_search"):
                return self.detector.search_detailed(snapshot, source)

        if workers <= 1 or len(sources) <= 1:
            outcomes = []
            for source in sources:
                outcome = search_one(source)
                if outcome is None:
                    break
                outcomes.append(outcome)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cycle-search") as pool:
                # map keeps results in token order regardless of completion order
                outcomes = list(pool.map(search_one, sources))

        if len(outcomes) != len(sources) or any(o is None for o in outcomes):
            logger.warning("Detection pass cancelled before all sources were searched")
            raise PassCancelledError("detection pass cancelled")
        return outcomes
