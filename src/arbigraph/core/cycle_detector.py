"""Bounded Bellman-Ford negative cycle search.

Each edge carries the weight ``-ln(rate * (1 - fee))``. A loop whose weights
sum below zero compounds to more than one unit of the starting token, so
finding arbitrage reduces to finding negative cycles reachable from a source.

The search only reads the snapshot it is given and keeps its distance and
predecessor tables local, so searches from different sources can run in
parallel against the same snapshot.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple
from loguru import logger

from arbigraph.config import SearchConfig
from arbigraph.core.token_graph import GraphSnapshot
from arbigraph.events import NullTracer, Tracer, TraceEventType
from arbigraph.infrastructure.error_handling import DiscardReason
from arbigraph.models import Cycle, Edge
from arbigraph.utils import short_identity


@dataclass
class SearchOutcome:
    """Cycles from one source plus what was thrown away on the way."""
    source: str
    cycles: List[Cycle]
    rounds: int = 0
    edges_skipped: int = 0
    discarded: int = 0


class CycleDetector:
    """Finds negative-weight cycles within a hop limit."""

    def __init__(self, config: Optional[SearchConfig] = None, tracer: Optional[Tracer] = None):
        self.config = config or SearchConfig()
        self.tracer = tracer or NullTracer()

    def search(
        self,
        snapshot: GraphSnapshot,
        source: str,
        hop_limit: Optional[int] = None,
    ) -> List[Cycle]:
        """Return the distinct cycles through ``source`` found in ``snapshot``."""
        return self.search_detailed(snapshot, source, hop_limit).cycles

    def search_detailed(
        self,
        snapshot: GraphSnapshot,
        source: str,
        hop_limit: Optional[int] = None,
    ) -> SearchOutcome:
        """Run the search and report counters alongside the cycles."""
        outcome = SearchOutcome(source=source, cycles=[])
        hops = hop_limit if hop_limit is not None else self.config.hop_limit
        if hops <= 0:
            raise ValueError("hop_limit must be positive")

        if snapshot.is_empty() or all(t.identity != source for t in snapshot.tokens):
            return outcome

        edges = self._usable_edges(snapshot, outcome)
        if not edges:
            return outcome

        distance: Dict[str, float] = {t.identity: math.inf for t in snapshot.tokens}
        distance[source] = 0.0
        predecessor: Dict[str, str] = {}
        eps = self.config.relaxation_epsilon
        # without two-token loops an edge may not undo the hop that reached its source
        no_reversal = self.config.min_cycle_tokens > 2

        for round_no in range(hops):
            updated = False
            for edge in edges:
                du = distance[edge.source]
                if du == math.inf or (no_reversal and _reverses(edge, predecessor)):
                    continue
                candidate = du + edge.weight
                if candidate < distance[edge.target] - eps:
                    distance[edge.target] = candidate
                    predecessor[edge.target] = edge.source
                    updated = True
            outcome.rounds = round_no + 1
            if not updated:
                break

        seen: Set[Tuple[str, ...]] = set()
        for edge in edges:
            du = distance[edge.source]
            if du == math.inf or (no_reversal and _reverses(edge, predecessor)):
                continue
            if du + edge.weight < distance[edge.target] - eps:
                cycle, reason = self._close_loop(edge, predecessor, source)
                if cycle is None:
                    outcome.discarded += 1
                    self.tracer.emit(
                        TraceEventType.CYCLE_DISCARDED,
                        source=source, vertex=edge.target, reason=reason.value,
                    )
                    continue
                key = cycle.key()
                if key in seen:
                    continue
                seen.add(key)
                outcome.cycles.append(cycle)
                self.tracer.emit(TraceEventType.CYCLE_FOUND, source=source, path=cycle.tokens)

        if outcome.cycles:
            logger.debug(f"Search from {short_identity(source)} found {len(outcome.cycles)} cycle(s)")
        return outcome

    def _usable_edges(self, snapshot: GraphSnapshot, outcome: SearchOutcome) -> List[Edge]:
        low = self.config.min_effective_rate
        high = self.config.max_effective_rate
        usable = []
        for edge in snapshot.edges:
            if edge.effective_rate <= 0 or not (low <= edge.effective_rate <= high):
                outcome.edges_skipped += 1
                self.tracer.emit(
                    TraceEventType.EDGE_SKIPPED,
                    source=edge.source, target=edge.target,
                    effective_rate=edge.effective_rate,
                    reason=DiscardReason.OUT_OF_RANGE.value,
                )
                continue
            usable.append(edge)
        return usable

    def _close_loop(
        self, edge: Edge, predecessor: Dict[str, str], source: str
    ) -> Tuple[Optional[Cycle], Optional[DiscardReason]]:
        """Walk predecessors back from a still-relaxable edge until a vertex repeats."""
        walk = [edge.target, edge.source]
        position = {edge.target: 0}
        cap = self.config.max_path_length

        while walk[-1] not in position:
            if len(walk) > cap:
                return None, DiscardReason.LENGTH_CAP
            position[walk[-1]] = len(walk) - 1
            previous = predecessor.get(walk[-1])
            if previous is None:
                return None, DiscardReason.BROKEN_CHAIN
            walk.append(previous)

        # walk is backwards: the loop is walk[start..end] reversed
        start = position[walk[-1]]
        loop = list(reversed(walk[start:]))
        if len(loop) - 1 > cap:
            return None, DiscardReason.LENGTH_CAP

        cycle = Cycle(tuple(loop))
        if source not in cycle.tokens:
            return None, DiscardReason.NOT_THROUGH_SOURCE
        if cycle.distinct_tokens < self.config.min_cycle_tokens:
            return None, DiscardReason.TOO_SHORT
        return cycle.rotated_to(source), None


def _reverses(edge: Edge, predecessor: Dict[str, str]) -> bool:
    """True when ``edge`` leads straight back to where its source was reached from."""
    return predecessor.get(edge.source) == edge.target
