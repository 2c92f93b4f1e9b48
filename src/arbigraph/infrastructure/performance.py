"""Timing and pass counters for the detection engine.

The engine times three stages by name (``refresh``, ``cycle_search`` and
``detection_pass``) and hands every completed pass's ``PassStats`` to
``record_pass``, so the shutdown summary can say what the scanner found as
well as how long it took.
"""
import time
import psutil
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from collections import defaultdict, deque
from threading import Lock
from loguru import logger

from arbigraph.models import PassStats


@dataclass
class PerformanceMetrics:
    """Timing metrics for one named stage."""

    total_operations: int = 0
    total_duration: float = 0.0
    min_duration: float = float('inf')
    max_duration: float = 0.0

    successful_operations: int = 0
    failed_operations: int = 0

    recent_durations: deque = field(default_factory=lambda: deque(maxlen=100))

    def update(self, duration: float, success: bool = True):
        """Fold one timed run into the totals."""
        self.total_operations += 1
        self.total_duration += duration
        self.min_duration = min(self.min_duration, duration)
        self.max_duration = max(self.max_duration, duration)
        self.recent_durations.append(duration)

        if success:
            self.successful_operations += 1
        else:
            self.failed_operations += 1

    @property
    def average_duration(self) -> float:
        """Mean duration in seconds over every run."""
        if self.total_operations == 0:
            return 0.0
        return self.total_duration / self.total_operations

    @property
    def recent_average(self) -> float:
        """Mean duration over the last hundred runs."""
        if not self.recent_durations:
            return 0.0
        return sum(self.recent_durations) / len(self.recent_durations)

    @property
    def success_rate(self) -> float:
        """Fraction of runs that finished without raising."""
        if self.total_operations == 0:
            return 0.0
        return self.successful_operations / self.total_operations

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict view for summaries and logging."""
        return {
            'total_operations': self.total_operations,
            'average_duration': self.average_duration,
            'recent_average': self.recent_average,
            'min_duration': self.min_duration if self.total_operations else 0.0,
            'max_duration': self.max_duration,
            'success_rate': self.success_rate,
            'successful': self.successful_operations,
            'failed': self.failed_operations,
        }


@dataclass
class PassTotals:
    """Running sums of ``PassStats`` over completed passes."""

    passes: int = 0
    passes_with_opportunities: int = 0
    cycles_found: int = 0
    cycles_discarded: int = 0
    cycles_stale: int = 0
    edges_rejected: int = 0
    edges_skipped: int = 0
    opportunities_reported: int = 0
    best_profit_pct: Optional[float] = None
    last_duration_ms: float = 0.0

    def add(self, stats: PassStats, reported: int, best_profit_pct: Optional[float] = None):
        """Fold one completed pass into the totals."""
        self.passes += 1
        self.cycles_found += stats.cycles_found
        self.cycles_discarded += stats.cycles_discarded
        self.cycles_stale += stats.cycles_stale
        self.edges_rejected += stats.edges_rejected
        self.edges_skipped += stats.edges_skipped
        self.opportunities_reported += reported
        self.last_duration_ms = stats.duration_ms
        if reported:
            self.passes_with_opportunities += 1
        if best_profit_pct is not None and (
            self.best_profit_pct is None or best_profit_pct > self.best_profit_pct
        ):
            self.best_profit_pct = best_profit_pct

    @property
    def hit_rate(self) -> float:
        """Share of passes that reported at least one opportunity."""
        if self.passes == 0:
            return 0.0
        return self.passes_with_opportunities / self.passes


class PerformanceMonitor:
    """Collects stage timings and per-pass counters for the engine."""

    def __init__(self):
        self.metrics: Dict[str, PerformanceMetrics] = defaultdict(PerformanceMetrics)
        self.passes = PassTotals()
        self.lock = Lock()
        self.start_time = time.time()
        self.process = psutil.Process()

    def measure(self, stage: str) -> "OperationTimer":
        """Time the enclosed block under ``stage``."""
        return OperationTimer(self, stage)

    def record_operation(self, stage: str, duration: float, success: bool = True):
        """Record one timed run of ``stage``."""
        with self.lock:
            self.metrics[stage].update(duration, success)

    def record_pass(self, stats: PassStats, reported: int, best_profit_pct: Optional[float] = None):
        """Add a completed pass's counters to the running totals."""
        with self.lock:
            self.passes.add(stats, reported, best_profit_pct)

    def get_metrics(self, stage: Optional[str] = None) -> Dict[str, Any]:
        """Timings for one stage, or for every stage keyed by name."""
        with self.lock:
            if stage:
                if stage not in self.metrics:
                    return {}
                return {'operation': stage, **self.metrics[stage].to_dict()}
            return {name: m.to_dict() for name, m in self.metrics.items()}

    def get_pass_totals(self) -> Dict[str, Any]:
        """Counters summed over every completed pass."""
        with self.lock:
            totals = self.passes
            return {
                'passes': totals.passes,
                'passes_with_opportunities': totals.passes_with_opportunities,
                'hit_rate': totals.hit_rate,
                'cycles_found': totals.cycles_found,
                'cycles_discarded': totals.cycles_discarded,
                'cycles_stale': totals.cycles_stale,
                'edges_rejected': totals.edges_rejected,
                'edges_skipped': totals.edges_skipped,
                'opportunities_reported': totals.opportunities_reported,
                'best_profit_pct': totals.best_profit_pct,
                'last_duration_ms': totals.last_duration_ms,
            }

    def get_system_metrics(self) -> Dict[str, Any]:
        """Resource usage of the scanner process."""
        return {
            'cpu_percent': self.process.cpu_percent(interval=None),
            'memory_mb': self.process.memory_info().rss / 1024 / 1024,
            'num_threads': self.process.num_threads(),
            'uptime_seconds': time.time() - self.start_time,
        }

    def get_summary(self) -> Dict[str, Any]:
        """Stage timings, pass totals and process resources in one dict."""
        with self.lock:
            pass_timing = self.metrics.get('detection_pass')
            failed_passes = pass_timing.failed_operations if pass_timing else 0

        return {
            'uptime_seconds': time.time() - self.start_time,
            'failed_passes': failed_passes,
            'passes': self.get_pass_totals(),
            'operations': self.get_metrics(),
            'system': self.get_system_metrics(),
        }

    def log_summary(self):
        """Log what the scanner did over its lifetime."""
        summary = self.get_summary()
        passes = summary['passes']

        logger.info("=" * 60)
        logger.info("Detection Summary")
        logger.info("=" * 60)
        logger.info(f"Uptime: {summary['uptime_seconds']:.2f}s")
        logger.info(
            f"Passes: {passes['passes']} completed, {summary['failed_passes']} failed, "
            f"{passes['hit_rate']:.2%} with opportunities"
        )
        logger.info(
            f"Cycles: {passes['cycles_found']} found, {passes['cycles_discarded']} discarded, "
            f"{passes['cycles_stale']} stale"
        )
        logger.info(
            f"Edges: {passes['edges_rejected']} rejected, {passes['edges_skipped']} skipped"
        )
        logger.info(f"Opportunities reported: {passes['opportunities_reported']}")
        if passes['best_profit_pct'] is not None:
            logger.info(f"Best profit: {passes['best_profit_pct']:.4f}%")
        logger.info(f"Memory: {summary['system']['memory_mb']:.1f} MB")

        for stage, metrics in summary['operations'].items():
            logger.info(
                f"  {stage}: "
                f"{metrics['total_operations']} runs, "
                f"avg {metrics['average_duration']*1000:.2f}ms, "
                f"max {metrics['max_duration']*1000:.2f}ms"
            )

        logger.info("=" * 60)


class OperationTimer:
    """Context manager that times a block and reports it to the monitor."""

    def __init__(self, monitor: PerformanceMonitor, stage: str):
        self.monitor = monitor
        self.stage = stage
        self.start_time = None
        self.duration = 0.0
        self.success = True

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        self.success = exc_type is None
        self.monitor.record_operation(self.stage, self.duration, self.success)
        return False


# shared by engines that are not handed their own monitor
performance_monitor = PerformanceMonitor()
