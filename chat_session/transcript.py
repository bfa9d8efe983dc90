"""
Best-effort transcript logging.

record() schedules the POST and returns immediately. Failures are logged and
emitted as diagnostic events; they never reach the session, and nothing is
retried.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union

import aiohttp

from logging_setup import get_logger, Component
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import ErrorCategory, describe_error
from .models import ButtonClickLogRequest, MessageLogRequest, Role


logger = get_logger(Component.TRANSCRIPT)
emitter = EventEmitter(ObsComponent.TRANSCRIPT)


@dataclass(frozen=True)
class TurnEvent:
    role: Role
    content: str
    session_id: str


@dataclass(frozen=True)
class ButtonClickEvent:
    session_id: str
    label: str


TranscriptEvent = Union[TurnEvent, ButtonClickEvent]


class TranscriptLogger:
    """Fire-and-forget reporting of turns and UI button clicks to the log backend."""

    def __init__(self, messages_url: str, button_url: str, *, timeout_seconds: float = 5.0):
        self._messages_url = messages_url
        self._button_url = button_url
        self._timeout = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, event: TranscriptEvent) -> Optional[asyncio.Task]:
        """Schedule delivery of one event. Never blocks, never raises."""
        if not event.session_id:
            logger.warning("No session id; transcript event dropped", event_kind=type(event).__name__)
            return None

        if isinstance(event, TurnEvent):
            endpoint = self._messages_url
            payload = MessageLogRequest(
                message=event.content, from_=event.role, user_id=event.session_id
            ).model_dump(mode="json", by_alias=True)
        else:
            endpoint = self._button_url
            payload = ButtonClickLogRequest(
                user_id=event.session_id, button_clicked=event.label
            ).model_dump(mode="json", by_alias=True)

        task = asyncio.create_task(self._post(endpoint, payload, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _post(self, endpoint: str, payload: Dict[str, Any], event: TranscriptEvent) -> bool:
        """Returns True if the log backend answered 2xx, False otherwise."""
        start_ts = time.time()
        event_kind = "turn" if isinstance(event, TurnEvent) else "button_click"
        try:
            async with aiohttp.ClientSession() as s:
                async with s.post(endpoint, json=payload, timeout=aiohttp.ClientTimeout(total=self._timeout)) as resp:
                    ok = 200 <= resp.status < 300
                    if ok:
                        logger.debug(
                            "Transcript event delivered",
                            session_id=event.session_id,
                            event_kind=event_kind,
                            status=resp.status,
                            latency_ms=int((time.time() - start_ts) * 1000),
                        )
                        return True
                    self._report(event, event_kind, endpoint, f"status {resp.status}", status=resp.status)
                    return False
        except Exception as e:
            self._report(event, event_kind, endpoint, describe_error(e), error_type=type(e).__name__)
            return False

    def _report(self, event: TranscriptEvent, event_kind: str, endpoint: str, error: str, **fields: Any) -> None:
        logger.warning(
            "Transcript event not delivered",
            session_id=event.session_id,
            event_kind=event_kind,
            endpoint=endpoint,
            error=error,
            **fields,
        )
        emitter.emit(
            "transcript.failed",
            session_id=event.session_id,
            severity=Severity.WARN,
            category=ErrorCategory.LOGGING_FAILURE,
            event_kind=event_kind,
            **fields,
        )

    async def aclose(self) -> None:
        """Wait for in-flight deliveries (shutdown only)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
