"""
Local audio output for synthesized speech.

Decodes the speech backend's payload with soundfile (libsndfile reads MP3,
WAV, OGG, FLAC) and plays it through a sounddevice callback stream. The
stream's finished callback runs on the PortAudio thread and resolves the
playback-ended future on the event loop.
"""
from __future__ import annotations

import asyncio
import io

import numpy as np
import sounddevice as sd
import soundfile as sf

from logging_setup import get_logger, Component

from .errors import PlaybackError

logger = get_logger(Component.SPEECH)


class SoundDeviceAudioPlayer:
    """AudioPlayer backed by the default output device."""

    def __init__(self, device=None):
        self._device = device

    def _decode(self, audio: bytes) -> tuple[np.ndarray, int]:
        try:
            data, samplerate = sf.read(io.BytesIO(audio), dtype="float32", always_2d=True)
        except (sf.LibsndfileError, RuntimeError, TypeError) as e:
            raise PlaybackError(f"Cannot decode audio: {e}") from e
        return data, samplerate

    async def start(self, audio: bytes, mime_type: str) -> "asyncio.Future[None]":
        loop = asyncio.get_running_loop()
        # Decoding a few seconds of MP3 is CPU work; keep it off the loop
        data, samplerate = await loop.run_in_executor(None, self._decode, audio)
        ended: asyncio.Future[None] = loop.create_future()
        position = 0

        def _callback(outdata, frames, time_info, status):
            nonlocal position
            if status:
                logger.debug("Audio output status", status=str(status))
            chunk = data[position:position + frames]
            outdata[:len(chunk)] = chunk
            if len(chunk) < frames:
                outdata[len(chunk):] = 0
                raise sd.CallbackStop
            position += frames

        def _resolve() -> None:
            stream.close()
            if not ended.done():
                ended.set_result(None)

        def _finished() -> None:
            loop.call_soon_threadsafe(_resolve)

        try:
            stream = sd.OutputStream(
                samplerate=samplerate,
                channels=data.shape[1],
                dtype="float32",
                device=self._device,
                callback=_callback,
                finished_callback=_finished,
            )
        except sd.PortAudioError as e:
            raise PlaybackError(f"Cannot open audio output: {e}") from e
        try:
            stream.start()
        except sd.PortAudioError as e:
            stream.close(ignore_errors=True)
            raise PlaybackError(f"Cannot start audio output: {e}") from e

        logger.debug(
            "Playback started",
            mime_type=mime_type,
            samplerate=samplerate,
            duration_ms=int(len(data) / samplerate * 1000),
        )
        return ended
