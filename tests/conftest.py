"""Shared fixtures for the Arbigraph test suite."""
from datetime import datetime
from typing import Dict, Tuple

import pytest

from arbigraph.config import (
    AcceptanceBand,
    ArbigraphConfig,
    EvaluationConfig,
    FeeConfig,
    SearchConfig,
    TokenConfig,
)
from arbigraph.core.token_graph import TokenGraph
from arbigraph.events import Tracer, TraceRecorder
from arbigraph.models import Quote, Token


def make_config(symbols=("A", "B", "C"), **sections) -> ArbigraphConfig:
    """Build a config over simple tokens whose identity equals the symbol."""
    tokens = [TokenConfig(identity=s, symbol=s, decimals=6) for s in symbols]
    defaults = {
        "search": SearchConfig(hop_limit=4, search_workers=1),
        "acceptance": AcceptanceBand(min_profit_pct=0.05, max_profit_pct=50.0),
        "evaluation": EvaluationConfig(reference_capital=1000.0, cost_per_hop=0.001),
        "fees": FeeConfig(default_fee=0.0, max_quote_age_seconds=None),
    }
    defaults.update(sections)
    return ArbigraphConfig(tokens=tokens, **defaults)


def make_quotes(rates: Dict[Tuple[str, str], float], fee: float = 0.0, exchange: str = "test-dex"):
    now = datetime.now()
    return {
        pair: Quote(rate=rate, fee=fee, liquidity=100000.0, timestamp=now, exchange=exchange)
        for pair, rate in rates.items()
    }


TRIANGLE = {
    ("A", "B"): 2.0,
    ("B", "C"): 2.0,
    ("C", "A"): 0.3,
}


@pytest.fixture
def tokens():
    """Three simple tokens."""
    return [Token(s, s, 6) for s in ("A", "B", "C")]


@pytest.fixture
def recorder():
    return TraceRecorder()


@pytest.fixture
def tracer(recorder):
    return Tracer([recorder])


@pytest.fixture
def triangle_quotes():
    """A -> B -> C -> A compounding to 1.2 with no fees."""
    return make_quotes(TRIANGLE, fee=0.0)


@pytest.fixture
def graph(tokens, tracer):
    """Graph over A, B, C with zero default fee."""
    g = TokenGraph(FeeConfig(default_fee=0.0, max_quote_age_seconds=None), tracer=tracer)
    g.configure_tokens(tokens)
    return g
