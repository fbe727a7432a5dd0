from __future__ import annotations

import io
import logging
import threading
import wave
from typing import Optional, Tuple

import numpy as np

from speakbridge.audio.resource import AudioResource


class PlaybackError(RuntimeError):
    pass


def decode_wav(data: bytes) -> Tuple[np.ndarray, int]:
    """Return (int16 samples shaped (frames, channels), sample_rate) for PCM16 WAV bytes."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            if wf.getsampwidth() != 2:
                raise PlaybackError(f"unsupported sample width: {wf.getsampwidth()}")
            channels = wf.getnchannels()
            sample_rate = wf.getframerate()
            frames = wf.readframes(wf.getnframes())
    except wave.Error as e:
        raise PlaybackError("clip is not a PCM WAV file") from e

    samples = np.frombuffer(frames, dtype=np.int16)
    return samples.reshape(-1, channels), sample_rate


class SoundDevicePlayer:
    """
    Plays synthesized clips with `sounddevice`. A new clip interrupts the
    one still playing, so only the newest translation is heard.
    """

    def __init__(self, *, device: Optional[str] = None, logger: logging.Logger | None = None) -> None:
        self.device = device
        self.logger = logger
        self._lock = threading.Lock()

    def play(self, resource: AudioResource) -> None:
        import sounddevice as sd

        samples, sample_rate = decode_wav(resource.data)
        with self._lock:
            sd.stop()
            sd.play(samples, samplerate=sample_rate, device=self.device)
        if self.logger is not None:
            self.logger.info(
                "playback_started",
                extra={"clip": resource.path.name, "frames": int(samples.shape[0]), "sr": sample_rate},
            )

    def stop(self) -> None:
        import sounddevice as sd

        with self._lock:
            sd.stop()
