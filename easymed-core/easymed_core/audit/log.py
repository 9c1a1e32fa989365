"""
Audit Log
=========
Append-only, hash-chained record of every challenge lifecycle event.
"""

import threading
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Protocol, Tuple

import structlog

from ..identity import mask_identifier
from ..metrics import record_challenge_event
from .event_types import AuditEventKind
from .hashing import compute_event_hash, verify_chain_integrity
from .models import AuditEvent, EvictedKindSummary

logger = structlog.get_logger(__name__)


class AuditSink(Protocol):
    """External collaborator receiving every audit event."""

    def append(self, event: AuditEvent) -> None: ...


class AuditLog:
    """
    Bounded in-memory audit trail.

    The newest ``max_entries`` events are retained. Older events are folded
    into a per-kind summary so their kind and timestamps survive eviction.
    Registered sinks receive each event fire-and-forget: a failing sink is
    logged and never affects the caller.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        sinks: Optional[Iterable[AuditSink]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_entries = max_entries
        self._clock = clock
        self._sinks: List[AuditSink] = list(sinks or [])
        self._events: Deque[AuditEvent] = deque()
        self._evicted: Dict[str, EvictedKindSummary] = {}
        self._previous_hash: Optional[str] = None
        self._anchor: Optional[str] = None
        self._lock = threading.Lock()

    def add_sink(self, sink: AuditSink) -> None:
        self._sinks.append(sink)

    def record(
        self,
        identifier: str,
        kind: AuditEventKind,
        message: str,
        success: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Append an audit event.

        Args:
            identifier: Normalized identifier the event concerns
            kind: Event kind
            message: Human-readable description
            success: Whether the operation succeeded
            metadata: Additional context (never raw codes or tokens)

        Returns:
            The created AuditEvent
        """
        kind_str = kind.value if isinstance(kind, AuditEventKind) else str(kind)
        metadata = dict(metadata or {})

        with self._lock:
            timestamp = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            event_hash = compute_event_hash(
                self._previous_hash,
                timestamp,
                identifier,
                kind_str,
                message,
                success,
                metadata,
            )
            event = AuditEvent(
                id=str(uuid.uuid4()),
                timestamp=timestamp,
                identifier=identifier,
                kind=kind_str,
                message=message,
                success=success,
                metadata=metadata,
                hash=event_hash,
                previous_hash=self._previous_hash,
            )
            self._previous_hash = event_hash
            self._events.append(event)
            while len(self._events) > self.max_entries:
                self._evict(self._events.popleft())

        record_challenge_event(kind_str)
        logger.info(
            "Audit event recorded",
            kind=kind_str,
            identifier=mask_identifier(identifier),
            success=success,
        )

        for sink in self._sinks:
            try:
                sink.append(event)
            except Exception as e:
                logger.warning("Audit sink failed", sink=type(sink).__name__, error=str(e))

        return event

    def _evict(self, event: AuditEvent) -> None:
        summary = self._evicted.get(event.kind)
        if summary is None:
            self._evicted[event.kind] = EvictedKindSummary(
                kind=event.kind,
                count=1,
                first_timestamp=event.timestamp,
                last_timestamp=event.timestamp,
            )
        else:
            summary.count += 1
            summary.last_timestamp = event.timestamp
        self._anchor = event.hash

    def events(self) -> List[AuditEvent]:
        """Retained events, oldest first."""
        with self._lock:
            return list(self._events)

    def recent(self, limit: int = 50) -> List[AuditEvent]:
        """Most recent events, newest first."""
        with self._lock:
            return list(reversed(self._events))[:limit]

    def find(
        self,
        identifier: Optional[str] = None,
        kind: Optional[AuditEventKind] = None,
    ) -> List[AuditEvent]:
        """Retained events filtered by identifier and/or kind."""
        kind_str = kind.value if isinstance(kind, AuditEventKind) else kind
        return [
            e for e in self.events()
            if (identifier is None or e.identifier == identifier)
            and (kind_str is None or e.kind == kind_str)
        ]

    def evicted_summary(self) -> Dict[str, EvictedKindSummary]:
        with self._lock:
            return dict(self._evicted)

    def kind_counts(self) -> Dict[str, int]:
        """Event counts per kind, including evicted events."""
        with self._lock:
            counts = {kind: s.count for kind, s in self._evicted.items()}
            for event in self._events:
                counts[event.kind] = counts.get(event.kind, 0) + 1
            return counts

    def verify_integrity(self) -> Tuple[bool, Optional[int]]:
        """Check the hash chain of the retained window."""
        with self._lock:
            events = list(self._events)
            anchor = self._anchor
        return verify_chain_integrity(events, anchor=anchor)

    def stats(self, window_seconds: int = 24 * 3600) -> Dict[str, Any]:
        """Delivery/verification statistics over the retained window."""
        cutoff = datetime.fromtimestamp(self._clock() - window_seconds, tz=timezone.utc)
        relevant = [e for e in self.events() if e.timestamp >= cutoff]

        bypassed = sum(1 for e in relevant if e.kind == AuditEventKind.BYPASSED.value)
        successful = sum(1 for e in relevant if e.success)
        failed = sum(
            1 for e in relevant
            if not e.success and e.kind != AuditEventKind.BYPASSED.value
        )
        total = len(relevant)

        return {
            "window_seconds": window_seconds,
            "total": total,
            "successful": successful,
            "failed": failed,
            "bypassed": bypassed,
            "pending": sum(1 for e in relevant if e.kind == AuditEventKind.SENT.value),
            "success_rate": round(successful / total * 100, 2) if total else 0.0,
        }

    def diagnostic_report(self) -> Dict[str, Any]:
        """Snapshot used by admin tooling to debug delivery problems."""
        valid, first_invalid = self.verify_integrity()
        return {
            "timestamp": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            "statistics": {
                "last_hour": self.stats(3600),
                "last_24_hours": self.stats(24 * 3600),
                "last_7_days": self.stats(7 * 24 * 3600),
            },
            "kind_counts": self.kind_counts(),
            "recent": [e.to_dict() for e in self.recent(10)],
            "buffer": {
                "size": len(self.events()),
                "max_entries": self.max_entries,
                "evicted": sum(s.count for s in self.evicted_summary().values()),
            },
            "integrity": {"valid": valid, "first_invalid_index": first_invalid},
        }
