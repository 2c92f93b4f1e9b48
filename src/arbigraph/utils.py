#!/usr/bin/env python3
"""Utility functions for Arbigraph."""
from typing import Sequence


def format_percentage(value: float, decimals: int = 4) -> str:
    """Format percentage value."""
    return f"{value:.{decimals}f}%"


def format_path(path: Sequence[str]) -> str:
    """Format token path for display."""
    return " → ".join(path)


def short_identity(identity: str, length: int = 8) -> str:
    """Shorten a long token identity for display."""
    if len(identity) <= length:
        return identity
    return identity[:length] + "..."
