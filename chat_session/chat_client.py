"""
Chat backend client.

POSTs the trailing message window and exposes the streamed response body as
raw byte chunks. Decoding is left to the stream reader.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp

from logging_setup import get_logger, Component

from .errors import ChatBackendError
from .models import ChatRequest

logger = get_logger(Component.CHAT_CLIENT)


class ChatClient:
    """Streams chat completions from the chat backend over a pooled HTTP session."""

    def __init__(
        self,
        url: str,
        *,
        read_timeout_seconds: float = 60.0,
        connect_timeout_seconds: float = 5.0,
        pool_size: int = 4,
    ):
        self._url = url
        self._read_timeout = read_timeout_seconds
        self._connect_timeout = connect_timeout_seconds
        self._pool_size = pool_size
        self._http_session: Optional[aiohttp.ClientSession] = None

    def _get_or_create_session(self) -> aiohttp.ClientSession:
        """
        Get or create the shared HTTP session.

        Only connect and per-read timeouts apply; a long reply may stream for
        longer than any total timeout would allow.
        """
        if self._http_session is None or self._http_session.closed:
            connector = aiohttp.TCPConnector(
                limit=self._pool_size,
                ttl_dns_cache=300,
            )
            timeout = aiohttp.ClientTimeout(
                total=None,
                sock_connect=self._connect_timeout,
                sock_read=self._read_timeout,
            )
            self._http_session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            logger.debug("Chat connection pool created", pool_size=self._pool_size)
        return self._http_session

    @asynccontextmanager
    async def open_stream(self, request: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Issue the chat request and yield the body's chunk iterator.

        Raises ChatBackendError for a non-success status, an empty body or a
        transport error (including one that happens mid-stream). Leaving the
        context, normally or by cancellation, releases the response.
        """
        session = self._get_or_create_session()
        t_start = time.perf_counter()
        try:
            async with session.post(self._url, json=request.model_dump(mode="json")) as response:
                latency_ms = int((time.perf_counter() - t_start) * 1000)
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    logger.warning(
                        "Chat backend error",
                        status_code=response.status,
                        error_text=error_text[:300],
                        latency_ms=latency_ms,
                    )
                    raise ChatBackendError(
                        f"Chat backend returned {response.status}", status=response.status
                    )
                if response.content_length == 0:
                    raise ChatBackendError("Chat backend returned an empty body", status=response.status)

                logger.debug(
                    "Chat stream opened",
                    status_code=response.status,
                    messages=len(request.messages),
                    latency_ms=latency_ms,
                )
                yield response.content.iter_any()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChatBackendError(f"Chat backend transport error: {type(e).__name__}: {e}") from e

    async def aclose(self) -> None:
        """Best-effort cleanup of the HTTP session. Safe to call multiple times."""
        if self._http_session is not None:
            try:
                await self._http_session.close()
            except Exception as e:
                logger.warning("Error closing chat HTTP session", error=str(e), error_type=type(e).__name__)
            finally:
                self._http_session = None
