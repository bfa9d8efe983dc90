"""
In-memory store for diagnostic events, queryable by session and exchange.

Bounded so a long-lived interactive session cannot grow it without limit;
the oldest events are evicted first.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

_ENVELOPE_KEYS = ("ts", "session_id", "component", "event_type", "severity", "correlation_id", "pii")
_NO_PII = {"contains_pii": False, "fields": [], "handling": "none"}


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredEvent:
    ts: datetime
    session_id: str
    component: str
    event_type: str
    severity: str
    correlation_id: str
    pii: Dict[str, Any]
    fields: Dict[str, Any]

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "StoredEvent":
        session_id = event.get("session_id", "")
        return cls(
            ts=_parse_ts(event.get("ts")),
            session_id=session_id,
            component=event.get("component", "unknown"),
            event_type=event.get("event_type", "unknown"),
            severity=event.get("severity", "info"),
            correlation_id=event.get("correlation_id") or session_id,
            pii=event.get("pii") or dict(_NO_PII),
            fields={k: v for k, v in event.items() if k not in _ENVELOPE_KEYS},
        )

    def matches(
        self,
        session_id: Optional[str],
        event_type: Optional[str],
        component: Optional[str],
        correlation_id: Optional[str],
        since: Optional[datetime],
    ) -> bool:
        return (
            (not session_id or self.session_id == session_id)
            and (not event_type or self.event_type == event_type)
            and (not component or self.component == component)
            and (not correlation_id or self.correlation_id == correlation_id)
            and (since is None or self.ts >= since)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flat event dict: envelope first, then the event's own fields."""
        return {
            "ts": self.ts.isoformat(),
            "session_id": self.session_id,
            "component": self.component,
            "event_type": self.event_type,
            "severity": self.severity,
            "correlation_id": self.correlation_id,
            "pii": self.pii,
            **self.fields,
        }


class EventStore:
    """FIFO event store over a bounded deque (10,000 events by default)."""

    def __init__(self, max_events: int = 10000):
        self._max_events = max_events
        self._events: Deque[StoredEvent] = deque(maxlen=max_events)

    def __len__(self) -> int:
        return len(self._events)

    def store(self, event: Dict[str, Any]) -> None:
        self._events.append(StoredEvent.from_event(event))

    def query(
        self,
        session_id: Optional[str] = None,
        event_type: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Matching events as dicts, oldest first, at most `limit` of them."""
        found: List[Dict[str, Any]] = []
        for event in self._events:
            if not event.matches(session_id, event_type, component, correlation_id, since):
                continue
            found.append(event.to_dict())
            if limit and len(found) >= limit:
                break
        return found

    def event_types(self, session_id: Optional[str] = None) -> List[str]:
        """Event types in order, handy for asserting on sequences."""
        return [e.event_type for e in self._events if not session_id or e.session_id == session_id]

    def clear(self) -> None:
        self._events.clear()

    def get_stats(self) -> Dict[str, Any]:
        oldest = self._events[0].ts.isoformat() if self._events else None
        newest = self._events[-1].ts.isoformat() if self._events else None
        return {
            "total_events": len(self._events),
            "max_events": self._max_events,
            "oldest_event_ts": oldest,
            "newest_event_ts": newest,
        }


event_store = EventStore()
