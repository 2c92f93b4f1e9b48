"""Core detection components."""

from .token_graph import TokenGraph, GraphSnapshot
from .cycle_detector import CycleDetector
from .profit_evaluator import ProfitEvaluator
from .ranker import OpportunityRanker
from .detection_engine import DetectionEngine
from .rate_sources import (
    RateSource,
    StaticRateSource,
    PriceTableRateSource,
    CoinGeckoRateSource,
    ExchangeRateSource,
)

__all__ = [
    "TokenGraph",
    "GraphSnapshot",
    "CycleDetector",
    "ProfitEvaluator",
    "OpportunityRanker",
    "DetectionEngine",
    "RateSource",
    "StaticRateSource",
    "PriceTableRateSource",
    "CoinGeckoRateSource",
    "ExchangeRateSource",
]
