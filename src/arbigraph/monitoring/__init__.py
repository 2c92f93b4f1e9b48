"""Reporting of detection results."""

from .monitor import OpportunityMonitor

__all__ = [
    "OpportunityMonitor",
]
