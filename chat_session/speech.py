"""
Speech playback sequencing.

One completed assistant turn becomes one speech backend request and one
playback. The `speaking` flag is raised before the request and always lowered
again: on playback end, on backend failure, on decode/playback errors and on
cancellation before playback started. A failed voice never blocks the session.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Callable, List, Optional, Protocol, Tuple

import aiohttp

from logging_setup import get_logger, Component
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import SpeechBackendError, classify_error, describe_error
from .models import SpeechRequest

logger = get_logger(Component.SPEECH)
emitter = EventEmitter(ObsComponent.SPEECH)


class AudioPlayer(Protocol):
    """Starts playback and returns a future that resolves when playback ends."""

    async def start(self, audio: bytes, mime_type: str) -> "asyncio.Future[None]":
        ...


class SpeechClient:
    """Requests synthesized audio for a piece of text from the speech backend."""

    def __init__(self, url: str, *, timeout_seconds: float = 30.0):
        self._url = url
        self._timeout = timeout_seconds
        self._http_session: Optional[aiohttp.ClientSession] = None

    def _get_or_create_session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._http_session

    async def synthesize(self, text: str) -> Tuple[bytes, str]:
        """
        Returns (audio bytes, mime type).

        Accepts a binary audio/* body, or a JSON body carrying base64
        "audioContent". Raises SpeechBackendError otherwise.
        """
        session = self._get_or_create_session()
        t_start = time.perf_counter()
        try:
            async with session.post(self._url, json=SpeechRequest(text=text).model_dump()) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    logger.error(
                        "Speech backend error",
                        status_code=response.status,
                        error_text=error_text[:300],
                    )
                    raise SpeechBackendError(
                        f"Speech backend returned {response.status}", status=response.status
                    )

                content_type = response.content_type or ""
                if content_type.startswith("audio/"):
                    audio = await response.read()
                    mime_type = content_type
                elif content_type == "application/json":
                    data = await response.json()
                    audio_b64 = data.get("audioContent") if isinstance(data, dict) else None
                    if not audio_b64:
                        raise SpeechBackendError("Speech backend: no audioContent in response")
                    audio = base64.b64decode(audio_b64, validate=True)
                    mime_type = data.get("mimeType") or "audio/mpeg"
                else:
                    raise SpeechBackendError(f"Speech backend: unexpected content type {content_type!r}")
        except (aiohttp.ClientError, asyncio.TimeoutError, binascii.Error) as e:
            raise SpeechBackendError(f"Speech backend exception: {type(e).__name__}: {e}") from e

        if not audio:
            raise SpeechBackendError("Speech backend returned empty audio")

        logger.info(
            "Speech synthesized",
            text_length=len(text),
            audio_bytes=len(audio),
            mime_type=mime_type,
            latency_ms=int((time.perf_counter() - t_start) * 1000),
        )
        return audio, mime_type

    async def aclose(self) -> None:
        if self._http_session is not None:
            try:
                await self._http_session.close()
            except Exception as e:
                logger.warning("Error closing speech HTTP session", error=str(e), error_type=type(e).__name__)
            finally:
                self._http_session = None


class Playback:
    """Handle for one playback. wait() returns once playback has ended or failed."""

    def __init__(self, finished: "asyncio.Future[None]"):
        self._finished = finished

    @classmethod
    def already_finished(cls) -> "Playback":
        fut = asyncio.get_running_loop().create_future()
        fut.set_result(None)
        return cls(fut)

    @property
    def done(self) -> bool:
        return self._finished.done()

    async def wait(self) -> None:
        # Shielded: a cancelled waiter must not cut the playback short
        await asyncio.shield(self._finished)


class SpeechPlaybackSequencer:
    """Owns the `speaking` flag and the request-then-play sequence."""

    def __init__(self, client: SpeechClient, player: AudioPlayer, *, session_id: str = "unknown"):
        self._client = client
        self._player = player
        self.session_id = session_id
        self.speaking = False
        self._listeners: List[Callable[[bool], None]] = []

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        """Called with the new value whenever `speaking` changes."""
        self._listeners.append(callback)

    def _set_speaking(self, value: bool) -> None:
        if self.speaking == value:
            return
        self.speaking = value
        for callback in self._listeners:
            callback(value)

    def _fail(self, error: BaseException, correlation_id: Optional[str]) -> None:
        self._set_speaking(False)
        category = classify_error(error)
        logger.warning(
            "Speech playback failed",
            session_id=self.session_id,
            correlation_id=correlation_id,
            category=category,
            error=describe_error(error),
            error_type=type(error).__name__,
        )
        emitter.emit(
            "speech.failed",
            session_id=self.session_id,
            severity=Severity.WARN,
            correlation_id=correlation_id,
            category=category,
        )

    async def speak(self, text: str, *, correlation_id: Optional[str] = None) -> Playback:
        """
        Request audio for text and start playing it.

        Returns once playback has *started* (or failed). Never raises except
        for cancellation, which also lowers the flag.
        """
        self._set_speaking(True)
        t_start = time.perf_counter()
        try:
            audio, mime_type = await self._client.synthesize(text)
            ended = await self._player.start(audio, mime_type)
        except asyncio.CancelledError:
            self._set_speaking(False)
            raise
        except Exception as e:
            self._fail(e, correlation_id)
            return Playback.already_finished()

        emitter.emit(
            "speech.started",
            session_id=self.session_id,
            correlation_id=correlation_id,
            text_length=len(text),
            latency_ms=int((time.perf_counter() - t_start) * 1000),
        )

        finished: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _on_ended(fut: "asyncio.Future[None]") -> None:
            if not fut.cancelled() and fut.exception() is not None:
                self._fail(fut.exception(), correlation_id)
            else:
                self._set_speaking(False)
                emitter.emit("speech.ended", session_id=self.session_id, correlation_id=correlation_id)
            if not finished.done():
                finished.set_result(None)

        ended.add_done_callback(_on_ended)
        return Playback(finished)
