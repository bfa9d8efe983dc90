"""
Streaming response reader.

Turns the chat backend's chunked body (newline-delimited JSON objects) into a
lazy sequence of content fragments. Chunk boundaries are arbitrary: a line can
be split across chunks, a chunk can carry several lines, and a multi-byte
character can be split in the middle.

Each line is decoded on its own. A malformed line is reported and skipped;
it never aborts the stream.
"""
from __future__ import annotations

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, Optional, Union

from logging_setup import get_logger, Component
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import ErrorCategory

logger = get_logger(Component.STREAM_READER)
emitter = EventEmitter(ObsComponent.STREAM_READER)

DONE_SENTINEL = "[DONE]"


def extract_content(payload: Any) -> Optional[str]:
    """choices[0].delta.content, or None when any step is missing."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def decode_line(line: str) -> Optional[str]:
    """
    Decode one line into a fragment.

    Accepts bare JSON lines and SSE-framed "data: {...}" lines.
    Raises ValueError (json.JSONDecodeError included) or RecursionError for
    a line json cannot decode.
    """
    line = line.strip()
    if line.startswith("data:"):
        line = line[len("data:"):].strip()
    if not line or line == DONE_SENTINEL:
        return None
    return extract_content(json.loads(line))


async def iter_fragments(
    chunks: AsyncIterable[Union[bytes, str]],
    *,
    session_id: str = "unknown",
    correlation_id: Optional[str] = None,
) -> AsyncIterator[str]:
    """Yield content fragments in stream order."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    line_no = 0

    def _decode(line: str) -> Optional[str]:
        try:
            return decode_line(line)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, oversized integers and too-deep nesting alike
            logger.warning(
                "Skipping malformed stream line",
                session_id=session_id,
                line_no=line_no,
                error=str(e)[:200],
                error_type=type(e).__name__,
                line_length=len(line),
            )
            emitter.emit(
                "stream.fragment_malformed",
                session_id=session_id,
                severity=Severity.WARN,
                correlation_id=correlation_id,
                category=ErrorCategory.MALFORMED_FRAGMENT,
                line_no=line_no,
            )
            return None

    async for chunk in chunks:
        buffer += chunk if isinstance(chunk, str) else decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            line_no += 1
            fragment = _decode(line)
            if fragment:
                yield fragment

    # Trailing line without a final newline
    buffer += decoder.decode(b"", final=True)
    if buffer.strip():
        line_no += 1
        fragment = _decode(buffer)
        if fragment:
            yield fragment
