"""Token graph with whole-snapshot edge replacement."""
import math
from datetime import datetime
from threading import Lock
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
from loguru import logger

from arbigraph.config import FeeConfig
from arbigraph.events import Tracer, NullTracer, TraceEventType
from arbigraph.infrastructure.error_handling import ConfigurationError, DiscardReason
from arbigraph.models import Edge, Quote, Token
from arbigraph.utils import short_identity

Pair = Tuple[str, str]


class GraphSnapshot:
    """An immutable, internally consistent set of edges.

    Searches take one snapshot and read only from it, so a refresh that
    installs a newer snapshot never changes what an in-flight search sees.
    """

    def __init__(
        self,
        tokens: Sequence[Token],
        edges: Iterable[Edge],
        version: int = 0,
        created_at: Optional[datetime] = None,
        rejected: int = 0,
    ):
        self.tokens: Tuple[Token, ...] = tuple(tokens)
        self.version = version
        self.created_at = created_at or datetime.now()
        self.rejected = rejected

        by_pair: Dict[Pair, Edge] = {}
        for edge in edges:
            by_pair[(edge.source, edge.target)] = edge

        outgoing: Dict[str, List[Edge]] = {t.identity: [] for t in self.tokens}
        for edge in by_pair.values():
            outgoing.setdefault(edge.source, []).append(edge)

        self._by_pair = MappingProxyType(by_pair)
        self._outgoing = MappingProxyType({k: tuple(v) for k, v in outgoing.items()})
        self.edges: Tuple[Edge, ...] = tuple(by_pair.values())

    def edges_from(self, token: str) -> Tuple[Edge, ...]:
        """Outgoing edges of a token."""
        return self._outgoing.get(token, ())

    def edge(self, source: str, target: str) -> Optional[Edge]:
        """The edge for a directed pair, if quoted."""
        return self._by_pair.get((source, target))

    def __len__(self) -> int:
        """Number of admitted edges."""
        return len(self.edges)

    def is_empty(self) -> bool:
        """True when no edge was admitted."""
        return not self.edges


class TokenGraph:
    """Owns the token universe and the current edge snapshot."""

    def __init__(self, fees: Optional[FeeConfig] = None, tracer: Optional[Tracer] = None):
        """Initialise an empty graph."""
        self.fees = fees or FeeConfig()
        self.tracer = tracer or NullTracer()
        self._tokens: Dict[str, Token] = {}
        self._lock = Lock()
        self._version = 0
        self._snapshot = GraphSnapshot((), ())

    def configure_tokens(self, tokens: Iterable[Token]):
        """Set the fixed token universe; allowed exactly once."""
        tokens = list(tokens)
        if self._tokens:
            raise ConfigurationError("token universe is already configured")
        if not tokens:
            raise ConfigurationError("token universe must not be empty")

        universe: Dict[str, Token] = {}
        for token in tokens:
            if token.identity in universe:
                raise ConfigurationError(f"duplicate token identity: {token.identity}")
            universe[token.identity] = token

        with self._lock:
            self._tokens = universe
            self._snapshot = GraphSnapshot(tuple(universe.values()), ())
        logger.info(f"Configured token universe with {len(universe)} tokens")

    @property
    def tokens(self) -> Tuple[Token, ...]:
        """The configured universe in configuration order."""
        return tuple(self._tokens.values())

    def token(self, identity: str) -> Optional[Token]:
        """Look up a configured token by identity."""
        return self._tokens.get(identity)

    def symbol(self, identity: str) -> str:
        """Display symbol, or a shortened identity for unknown tokens."""
        token = self._tokens.get(identity)
        return token.symbol if token else short_identity(identity)

    def snapshot(self) -> GraphSnapshot:
        """Return the current snapshot."""
        with self._lock:
            return self._snapshot

    def edges_from(self, token: str) -> Tuple[Edge, ...]:
        """Outgoing edges of a token in the current snapshot."""
        return self.snapshot().edges_from(token)

    def replace_edges(
        self,
        quotes: Mapping[Pair, Quote],
        now: Optional[datetime] = None,
    ) -> GraphSnapshot:
        """Build a new snapshot from ``quotes`` and install it.

        The new snapshot is built completely before the swap; if building
        raises, the previous snapshot stays active.
        """
        if not self._tokens:
            raise ConfigurationError("token universe is not configured")

        now = now or datetime.now()
        admitted: List[Edge] = []
        rejected = 0

        for (source, target), quote in quotes.items():
            edge, reason = self._admit(source, target, quote, now)
            if edge is None:
                rejected += 1
                self.tracer.emit(
                    TraceEventType.EDGE_REJECTED,
                    source=source, target=target, reason=reason.value,
                )
                continue
            admitted.append(edge)
            self.tracer.emit(
                TraceEventType.EDGE_ADMITTED,
                source=source, target=target, effective_rate=edge.effective_rate,
            )

        with self._lock:
            self._version += 1
            snapshot = GraphSnapshot(
                tuple(self._tokens.values()),
                admitted,
                version=self._version,
                created_at=now,
                rejected=rejected,
            )
            self._snapshot = snapshot

        logger.debug(
            f"Installed snapshot v{snapshot.version}: "
            f"{len(snapshot)} edges admitted, {rejected} rejected"
        )
        return snapshot

    def _admit(
        self, source: str, target: str, quote: Quote, now: datetime
    ) -> Tuple[Optional[Edge], Optional[DiscardReason]]:
        """Build the edge for one quote, or say why it is rejected."""
        if source not in self._tokens or target not in self._tokens:
            return None, DiscardReason.UNKNOWN_TOKEN
        if source == target:
            return None, DiscardReason.SELF_LOOP
        if not _positive_finite(quote.rate):
            return None, DiscardReason.INVALID_RATE

        fee = self.fees.fee_for(source, target)
        if fee is None:
            fee = quote.fee if quote.fee is not None else self.fees.default_fee
        if not (isinstance(fee, (int, float)) and 0 <= fee < 1):
            return None, DiscardReason.INVALID_FEE

        if not _positive_finite(quote.rate * (1 - fee)):
            return None, DiscardReason.INVALID_RATE

        max_age = self.fees.max_quote_age_seconds
        if max_age is not None and (now - quote.timestamp).total_seconds() > max_age:
            return None, DiscardReason.STALE_QUOTE

        edge = Edge(
            source=source,
            target=target,
            rate=float(quote.rate),
            fee=float(fee),
            liquidity=quote.liquidity,
            timestamp=quote.timestamp,
            exchange=quote.exchange,
        )
        return edge, None

    def __iter__(self) -> Iterator[Edge]:
        """Iterate the edges of the current snapshot."""
        return iter(self.snapshot().edges)


def _positive_finite(value) -> bool:
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False
