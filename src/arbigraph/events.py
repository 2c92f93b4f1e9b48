"""Structured trace events emitted by the detection core."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Optional
from loguru import logger


class TraceEventType(Enum):
    """Points in a pass where a trace event is emitted."""
    EDGE_ADMITTED = "edge_admitted"
    EDGE_REJECTED = "edge_rejected"
    EDGE_SKIPPED = "edge_skipped"
    CYCLE_FOUND = "cycle_found"
    CYCLE_DISCARDED = "cycle_discarded"
    CYCLE_STALE = "cycle_stale"
    OPPORTUNITY_FILTERED = "opportunity_filtered"
    PASS_COMPLETED = "pass_completed"


@dataclass(frozen=True)
class TraceEvent:
    """One trace event."""
    kind: TraceEventType
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)


TraceHandler = Callable[[TraceEvent], None]


class Tracer:
    """Fans trace events out to registered handlers."""

    def __init__(self, handlers: Optional[List[TraceHandler]] = None, log: bool = False):
        self.handlers: List[TraceHandler] = list(handlers or [])
        self.log = log

    def add_handler(self, handler: TraceHandler):
        self.handlers.append(handler)

    def emit(self, kind: TraceEventType, **data):
        """Emit an event to every handler."""
        event = TraceEvent(kind=kind, data=data)
        if self.log:
            logger.debug(f"[trace] {kind.value} {data}")
        for handler in self.handlers:
            handler(event)


class TraceRecorder:
    """Collects events in memory."""

    def __init__(self):
        self.events: List[TraceEvent] = []
        self._lock = Lock()

    def __call__(self, event: TraceEvent):
        with self._lock:
            self.events.append(event)

    def of_kind(self, kind: TraceEventType) -> List[TraceEvent]:
        with self._lock:
            return [e for e in self.events if e.kind == kind]

    def count(self, kind: TraceEventType) -> int:
        return len(self.of_kind(kind))

    def clear(self):
        with self._lock:
            self.events.clear()


class NullTracer(Tracer):
    """Tracer that drops every event."""

    def emit(self, kind: TraceEventType, **data):
        pass
