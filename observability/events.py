"""
Structured JSON diagnostic events.

The operator-visible channel of the chat session: every failure that is kept
away from the user (failed exchange, dropped transcript event, silent speech
failure) ends up here as one JSON line, and in the in-memory event store.

Envelope: ts, session_id, component, event_type, severity, correlation_id
(the exchange id, or the session id when there is none) and pii.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TextIO

from logging_setup import highlight_latency

from .event_store import event_store


class Component(str, Enum):
    SESSION_MANAGER = "session_manager"
    SPEECH = "speech"
    TRANSCRIPT = "transcript"
    STREAM_READER = "stream_reader"
    IDENTITY = "identity"


class Severity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}

# None: sys.stdout as it is at emit time
_output: Optional[TextIO] = None


def configure_event_output(stream: Optional[TextIO]) -> None:
    """Send events elsewhere, e.g. stderr when stdout renders the conversation."""
    global _output
    _output = stream


class EventEmitter:
    """One emitter per component; writes each event and keeps it in the store."""

    def __init__(self, component: Component):
        self.component = component

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> None:
        """
        Args:
            event_type: Stable dotted name, e.g. "exchange.completed"
            session_id: Opaque session identifier
            correlation_id: Exchange id; the session id when omitted
            pii: contains_pii / fields / handling block
            **fields: Event-specific fields
        """
        event: Dict[str, Any] = dict(
            ts=datetime.now(timezone.utc).isoformat(),
            session_id=session_id,
            component=self.component.value,
            event_type=event_type,
            severity=severity.value,
            correlation_id=correlation_id or session_id,
            pii=pii or DEFAULT_PII,
            **fields,
        )

        line = json.dumps(event, ensure_ascii=False, default=str)
        if fields.get("latency_ms") is not None:
            line = highlight_latency(line)

        out = _output or sys.stdout
        out.write(line + "\n")
        out.flush()

        event_store.store(event)
