"""
Tests for local audio playback. Skipped where PortAudio is not installed.
"""
import io

import numpy as np
import pytest
import soundfile as sf

try:
    import sounddevice as sd
except (ImportError, OSError):
    pytest.skip("PortAudio is not available", allow_module_level=True)

from chat_session.audio_player import SoundDeviceAudioPlayer
from chat_session.errors import PlaybackError


class FailingStream:
    """OutputStream that opens but cannot start."""

    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.closed = False
        FailingStream.instances.append(self)

    def start(self):
        raise sd.PortAudioError("Device unavailable")

    def close(self, ignore_errors=True):
        self.closed = True


def _wav(frames: int = 160, samplerate: int = 16000) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, np.zeros((frames, 1), dtype="float32"), samplerate, format="WAV")
    return buffer.getvalue()


class TestDecode:
    """Test decoding of the speech backend's audio payload."""

    def test_decodes_wav(self):
        """Test WAV bytes decode to a 2-D float32 array."""
        data, samplerate = SoundDeviceAudioPlayer()._decode(_wav())

        assert samplerate == 16000
        assert data.shape == (160, 1)
        assert data.dtype == np.float32

    def test_garbage_raises_playback_error(self):
        """Test undecodable bytes raise PlaybackError."""
        with pytest.raises(PlaybackError):
            SoundDeviceAudioPlayer()._decode(b"definitely not audio")


class TestStart:
    """Test starting the output stream."""

    @pytest.mark.asyncio
    async def test_stream_closed_when_start_fails(self, monkeypatch):
        """Test a stream that cannot start is closed before the error surfaces."""
        FailingStream.instances.clear()
        monkeypatch.setattr(sd, "OutputStream", FailingStream)

        with pytest.raises(PlaybackError, match="Cannot start audio output"):
            await SoundDeviceAudioPlayer().start(_wav(), "audio/wav")

        assert len(FailingStream.instances) == 1
        assert FailingStream.instances[0].closed is True
