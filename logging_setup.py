"""
Shared logging for voice_chat_demo.

Every module logs through a StructuredLogger, so operator-visible diagnostics
(failed exchanges, dropped transcript events, playback errors) come out as one
JSON object per line on stderr. stdout is left to the rendered conversation.

Message text typed by the user or produced by the assistant is PII: log it
only through the *_pii helpers, which keep it in a separate "pii" field.
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TextIO


class Component(str, Enum):
    """Log tag for each part of the client."""
    SESSION_MANAGER = "session_manager"
    CHAT_CLIENT = "chat_client"
    STREAM_READER = "stream_reader"
    SPEECH = "speech"
    TRANSCRIPT = "transcript"
    IDENTITY = "identity"
    DEBOUNCE = "debounce"
    CLI = "cli"


TEXT_FORMAT = "%(levelname)s - %(component)s - %(message)s"

_LATENCY_RE = re.compile(r'("latency_ms"\s*:\s*)(\d+)')
_ORANGE = "\033[38;5;208m"
_RESET = "\033[0m"

# LogRecord attributes that are not user fields
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def highlight_latency(json_text: str) -> str:
    """Give latency_ms values an "ms" unit, in orange unless NO_COLOR is set."""
    if os.environ.get("NO_COLOR", "").lower() in ("1", "true", "yes"):
        return _LATENCY_RE.sub(r"\1\2 ms", json_text)
    return _LATENCY_RE.sub(rf"\1{_ORANGE}\2 ms{_RESET}", json_text)


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, severity, component, session_id, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname.lower(),
            "component": getattr(record, "component", record.name),
        }
        session_id = getattr(record, "session_id", None)
        if session_id is not None:
            entry["session_id"] = session_id
        entry["message"] = record.getMessage()

        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in ("component", "session_id")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        text = json.dumps(entry, ensure_ascii=False, default=str)
        if "latency_ms" in entry:
            text = highlight_latency(text)
        return text


class StructuredLogger:
    """
    Keyword arguments become JSON fields.

    Usage:
        logger = get_logger(Component.SESSION_MANAGER, session_id="3f2a...")
        logger.info("Exchange started", history_window=6)
        logger.debug_pii("User turn appended", content="What are the current models?")
    """

    def __init__(
        self,
        component: "str | Component",
        session_id: Optional[str] = None,
        logger_name: Optional[str] = None,
    ):
        self.component = component.value if isinstance(component, Component) else component
        self.session_id = session_id
        self.logger = logging.getLogger(logger_name or f"voice_chat.{self.component}")

    def _log(self, level: int, message: str, pii: Optional[Dict[str, Any]] = None, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        extra = {"component": self.component}
        if self.session_id:
            extra["session_id"] = self.session_id
        # Explicit session_id in fields wins over the bound one
        extra.update(fields)
        if pii:
            extra["pii"] = pii
        self.logger.log(level, message, exc_info=exc_info, stacklevel=3, extra=extra)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        self._log(logging.CRITICAL, message, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Error with the current exception's traceback."""
        fields.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **fields)

    def debug_pii(self, message: str, **pii_fields: Any) -> None:
        self._log(logging.DEBUG, message, pii=pii_fields)

    def info_pii(self, message: str, **pii_fields: Any) -> None:
        self._log(logging.INFO, message, pii=pii_fields)

    def with_session(self, session_id: str) -> "StructuredLogger":
        return StructuredLogger(self.component, session_id=session_id, logger_name=self.logger.name)


def setup_logging(
    level: str = "INFO",
    use_json: bool = True,
    include_timestamp: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the root logger once at startup. Replaces existing handlers.

    Text mode is meant for local debugging; JSON is the default.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = f"%(asctime)s - {TEXT_FORMAT}" if include_timestamp else TEXT_FORMAT
        handler.setFormatter(logging.Formatter(fmt, defaults={"component": "-"}))

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # aiohttp logs every connection reset at DEBUG
    logging.getLogger("aiohttp").setLevel(max(root.level, logging.INFO))


def get_logger(component: "str | Component", session_id: Optional[str] = None) -> StructuredLogger:
    return StructuredLogger(component, session_id=session_id)
