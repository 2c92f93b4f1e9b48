"""Deduplication, acceptance filtering and ordering of opportunities."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from arbigraph.config import AcceptanceBand
from arbigraph.events import NullTracer, Tracer, TraceEventType
from arbigraph.infrastructure.error_handling import DiscardReason
from arbigraph.models import Opportunity


@dataclass
class RankingReport:
    """Ranked opportunities plus what was removed."""
    opportunities: Tuple[Opportunity, ...]
    duplicates_removed: int = 0
    filtered: int = 0


class OpportunityRanker:
    """Applies the acceptance band and sorts by profitability."""

    def __init__(self, band: Optional[AcceptanceBand] = None, tracer: Optional[Tracer] = None):
        self.band = band or AcceptanceBand()
        self.tracer = tracer or NullTracer()

    def rank(self, opportunities: Iterable[Opportunity]) -> Tuple[Opportunity, ...]:
        """Return the accepted opportunities, best first."""
        return self.rank_detailed(opportunities).opportunities

    def rank_detailed(self, opportunities: Iterable[Opportunity]) -> RankingReport:
        """Dedup by rotation key, apply the band, sort and truncate."""
        report = RankingReport(opportunities=())

        # the same loop found from different member tokens counts once
        unique: List[Opportunity] = []
        seen = set()
        for opp in opportunities:
            key = opp.key()
            if key in seen:
                report.duplicates_removed += 1
                continue
            seen.add(key)
            unique.append(opp)

        accepted = []
        for opp in unique:
            reason = self._rejection(opp)
            if reason is not None:
                report.filtered += 1
                self.tracer.emit(
                    TraceEventType.OPPORTUNITY_FILTERED,
                    path=opp.tokens,
                    profit_percentage=opp.profit_percentage,
                    reason=reason.value,
                )
                continue
            accepted.append(opp)

        accepted.sort(key=self.sort_key)
        if self.band.max_results is not None:
            accepted = accepted[: self.band.max_results]

        report.opportunities = tuple(accepted)
        return report

    def _rejection(self, opp: Opportunity) -> Optional[DiscardReason]:
        """Why ``opp`` falls outside the acceptance band, or None."""
        if opp.profit_percentage < self.band.min_profit_pct:
            return DiscardReason.BELOW_MIN
        # implausibly large profits point at bad or stale input data
        if opp.profit_percentage > self.band.max_profit_pct:
            return DiscardReason.ABOVE_MAX
        return None

    @staticmethod
    def sort_key(opp: Opportunity):
        """Higher profit first, then fewer hops, lower cost, token order."""
        return (-opp.profit_percentage, opp.hops, opp.cost_estimate, opp.tokens)
