"""Data models for arbitrage cycle detection."""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Optional, Tuple

from arbigraph.utils import format_path


@dataclass(frozen=True)
class Token:
    """An exchangeable asset in the graph."""
    identity: str
    symbol: str
    decimals: int
    price_id: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    """A quote for one ordered token pair as supplied by a rate source."""
    rate: float  # units of target per unit of source
    fee: Optional[float] = None
    liquidity: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    exchange: str = ""


@dataclass(frozen=True)
class Edge:
    """A quote admitted into a graph snapshot."""
    source: str
    target: str
    rate: float
    fee: float
    liquidity: float
    timestamp: datetime
    exchange: str = ""
    # derived: rate net of fee and its log-space weight (negative when the
    # hop compounds above 1)
    effective_rate: float = field(init=False)
    weight: float = field(init=False)

    def __post_init__(self):
        effective = self.rate * (1 - self.fee)
        if not math.isfinite(effective) or effective <= 0:
            raise ValueError(
                f"edge {self.source}->{self.target} has invalid effective rate {effective}"
            )
        object.__setattr__(self, "effective_rate", effective)
        object.__setattr__(self, "weight", -math.log(effective))


@dataclass(frozen=True)
class Cycle:
    """A closed token loop starting and ending at the same token."""
    tokens: Tuple[str, ...]

    @property
    def hops(self) -> int:
        return len(self.tokens) - 1

    @property
    def distinct_tokens(self) -> int:
        return len(set(self.tokens[:-1]))

    def key(self) -> Tuple[str, ...]:
        """Rotation independent identity of the loop."""
        return cycle_key(self.tokens)

    def rotated_to(self, token: str) -> "Cycle":
        """Return the same loop starting and ending at ``token``."""
        body = list(self.tokens[:-1])
        i = body.index(token)
        body = body[i:] + body[:i]
        return Cycle(tuple(body + [token]))

    def __str__(self) -> str:
        return format_path(self.tokens)


def cycle_key(tokens: Tuple[str, ...]) -> Tuple[str, ...]:
    """Canonical rotation of a closed loop (smallest identity first)."""
    body = list(tokens[:-1])
    if not body:
        return tuple(tokens)
    i = body.index(min(body))
    return tuple(body[i:] + body[:i])


@dataclass(frozen=True)
class Opportunity:
    """A quantified arbitrage candidate derived from one cycle."""
    tokens: Tuple[str, ...]
    symbols: Tuple[str, ...]
    exchanges: Tuple[str, ...]
    start_amount: float
    final_amount: float
    profit_amount: float
    profit_percentage: float
    cost_estimate: float
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def hops(self) -> int:
        return len(self.tokens) - 1

    def key(self) -> Tuple[str, ...]:
        return cycle_key(self.tokens)

    def display_path(self) -> str:
        return format_path(self.symbols)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tokens"] = list(self.tokens)
        data["symbols"] = list(self.symbols)
        data["exchanges"] = list(self.exchanges)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def __str__(self) -> str:
        return (
            f"{self.display_path()} | Profit: {self.profit_percentage:.4f}% "
            f"({self.profit_amount:.4f})"
        )


@dataclass
class PassStats:
    """Counters collected during one detection pass."""
    sources_searched: int = 0
    edges_admitted: int = 0
    edges_rejected: int = 0
    edges_skipped: int = 0
    cycles_found: int = 0
    cycles_discarded: int = 0
    cycles_stale: int = 0
    opportunities_evaluated: int = 0
    opportunities_filtered: int = 0
    duplicates_removed: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one completed detection pass."""
    opportunities: Tuple[Opportunity, ...]
    stats: PassStats
    timestamp: datetime
    snapshot_version: int
    completed: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.opportunities

    @property
    def best(self) -> Optional[Opportunity]:
        return self.opportunities[0] if self.opportunities else None
