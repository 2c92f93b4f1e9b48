"""
Arbigraph - negative-cycle arbitrage detection over token exchange quotes.
"""

from .config import ArbigraphConfig, config
from .models import Token, Quote, Edge, Cycle, Opportunity, DetectionResult, PassStats
from .utils import format_percentage, format_path, short_identity

__version__ = "1.0.0"
__all__ = [
    "ArbigraphConfig",
    "config",
    "Token",
    "Quote",
    "Edge",
    "Cycle",
    "Opportunity",
    "DetectionResult",
    "PassStats",
    "format_percentage",
    "format_path",
    "short_identity",
]
