"""Turns a raw cycle into a quantified opportunity."""
from datetime import datetime
from typing import Callable, Optional
from loguru import logger

from arbigraph.config import EvaluationConfig
from arbigraph.core.token_graph import GraphSnapshot
from arbigraph.events import NullTracer, Tracer, TraceEventType
from arbigraph.infrastructure.error_handling import DiscardReason
from arbigraph.models import Cycle, Opportunity
from arbigraph.utils import short_identity


class ProfitEvaluator:
    """Replays a cycle hop by hop on a nominal reference capital."""

    def __init__(
        self,
        config: Optional[EvaluationConfig] = None,
        symbol_of: Optional[Callable[[str], str]] = None,
        tracer: Optional[Tracer] = None,
    ):
        self.config = config or EvaluationConfig()
        self.symbol_of = symbol_of or (lambda identity: identity)
        self.tracer = tracer or NullTracer()

    def evaluate(
        self,
        cycle: Cycle,
        snapshot: GraphSnapshot,
        capital: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> Optional[Opportunity]:
        """Quantify ``cycle`` against ``snapshot``.

        Returns None when any hop no longer has an edge in the snapshot;
        the cycle is stale and is not reported.
        """
        start = capital if capital is not None else self.config.reference_capital
        if start <= 0:
            raise ValueError("reference capital must be positive")

        amount = start
        exchanges = []

        for source, target in zip(cycle.tokens, cycle.tokens[1:]):
            edge = snapshot.edge(source, target)
            if edge is None:
                logger.debug(f"Stale cycle {cycle}: no edge {short_identity(source)} -> {short_identity(target)}")
                self.tracer.emit(
                    TraceEventType.CYCLE_STALE,
                    path=cycle.tokens, source=source, target=target,
                    reason=DiscardReason.MISSING_EDGE.value,
                )
                return None
            amount *= edge.effective_rate
            exchanges.append(edge.exchange)

        profit = amount - start
        return Opportunity(
            tokens=cycle.tokens,
            symbols=tuple(self.symbol_of(t) for t in cycle.tokens),
            exchanges=tuple(exchanges),
            start_amount=start,
            final_amount=amount,
            profit_amount=profit,
            profit_percentage=profit / start * 100,
            cost_estimate=cycle.hops * self.config.cost_per_hop,
            timestamp=timestamp or datetime.now(),
        )
