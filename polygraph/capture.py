"""Microphone capture for the session engine.

The engine asks an :class:`AudioSource` for the most recent window of
audio on every sampling tick.  :class:`MicrophoneSource` implements it on
top of a :class:`sounddevice.InputStream`.  The PortAudio callback
down-mixes to mono, removes low-frequency rumble with a streaming
high-pass filter and keeps the latest ``FFT_SIZE`` samples for the
analyser.

Opening the microphone has three outcomes, reported as a
:class:`CaptureStatus` rather than raised: the stream is granted, the
host refuses access, or the device is busy.  A refused or busy
microphone is simply a source that never yields audio.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional, Protocol

import numpy as np
from scipy.signal import butter, sosfilt, sosfilt_zi

from .constants import BLOCK_SIZE, FFT_SIZE, HP_FILTER_CUTOFF, SAMPLE_RATE
from .logging_utils import log_event

# PortAudio's ``paDeviceUnavailable`` error code.
_PA_DEVICE_UNAVAILABLE = -9985


class CaptureStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    BUSY = "busy"


class AudioSource(Protocol):
    """Something the sampler can pull audio windows from."""

    def open(self) -> CaptureStatus: ...

    def read(self) -> Optional[np.ndarray]: ...

    def close(self) -> None: ...


class UnavailableSource:
    """A source that is always refused and never yields audio."""

    def __init__(self, status: CaptureStatus = CaptureStatus.DENIED) -> None:
        self.status = status

    def open(self) -> CaptureStatus:
        return self.status

    def read(self) -> Optional[np.ndarray]:
        return None

    def close(self) -> None:
        return None


def classify_capture_error(exc: BaseException) -> CaptureStatus:
    """Map an exception raised while opening a stream to a status.

    ``PortAudioError`` carries the PortAudio error code as its second
    argument; "device unavailable" and any message mentioning a busy
    device count as :attr:`CaptureStatus.BUSY`.  Everything else is
    treated as a refusal, including a PortAudio library that cannot be
    loaded at all.
    """
    args = getattr(exc, "args", ())
    code = args[1] if len(args) > 1 else None
    message = str(args[0] if args else exc).lower()
    if code == _PA_DEVICE_UNAVAILABLE or "unavailable" in message or "busy" in message:
        return CaptureStatus.BUSY
    return CaptureStatus.DENIED


class MicrophoneSource:
    """Capture the microphone into a rolling analysis window.

    Args:
        device_index: PortAudio input device, ``None`` for the default.
        channels: Number of channels to open; input is down-mixed.
        sample_rate: Sampling frequency in hertz.
        block_size: Frames per PortAudio callback.
        window: Number of most recent samples returned by :meth:`read`.
        hp_cutoff: High-pass filter cutoff frequency in hertz.
    """

    def __init__(
        self,
        device_index: Optional[int] = None,
        *,
        channels: int = 1,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = BLOCK_SIZE,
        window: int = FFT_SIZE,
        hp_cutoff: float = HP_FILTER_CUTOFF,
    ) -> None:
        self.device_index = device_index
        self.channels = channels
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.window = window
        self.status: Optional[CaptureStatus] = None
        self.stream: Optional[sounddevice.InputStream] = None
        self._lock = threading.Lock()
        self._buffer = np.zeros(0, dtype=np.float32)

        # Second-order sections keep the streaming filter numerically stable.
        nyquist = self.sample_rate / 2.0
        normalised_cutoff = max(min(hp_cutoff / nyquist, 0.99), 0.001)
        self.hp_sos = butter(2, normalised_cutoff, btype="highpass", output="sos")
        self.hp_zi = sosfilt_zi(self.hp_sos)

    # --------------------------------------------------------------
    def _callback(self, indata, frames, _time, status) -> None:  # noqa: D401
        if status:
            log_event("WARNING", "Capture", "Input stream status", status=status)
        try:
            if indata.ndim == 2 and indata.shape[1] > 1:
                samples = indata.mean(axis=1).astype(np.float32)
            else:
                samples = indata.reshape(-1).astype(np.float32)

            samples, self.hp_zi = sosfilt(self.hp_sos, samples, zi=self.hp_zi)
            samples = samples.astype(np.float32)
            with self._lock:
                self._buffer = np.concatenate([self._buffer, samples])[-self.window :]
        except Exception as e:
            # Raising here would make PortAudio abort the stream.
            log_event("ERROR", "Capture", "Callback failed", error=e)

    # --------------------------------------------------------------
    def open(self) -> CaptureStatus:
        """Open and start the input stream, reporting the outcome."""
        if self.stream is not None:
            return CaptureStatus.GRANTED
        with self._lock:
            self._buffer = np.zeros(0, dtype=np.float32)
        self.hp_zi = sosfilt_zi(self.hp_sos)
        try:
            import sounddevice as sd

            self.stream = sd.InputStream(
                device=self.device_index,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=self._callback,
            )
            self.stream.start()
        except Exception as e:
            self.status = classify_capture_error(e)
            log_event(
                "WARNING",
                "Capture",
                "Microphone unavailable",
                status=self.status.value,
                error=e,
            )
            self._teardown()
            return self.status
        self.status = CaptureStatus.GRANTED
        log_event("INFO", "Capture", "Microphone opened", device=self.device_index)
        return self.status

    def read(self) -> Optional[np.ndarray]:
        """Return a copy of the latest analysis window, or ``None`` if empty."""
        with self._lock:
            if self._buffer.size == 0:
                return None
            return self._buffer.copy()

    def _teardown(self) -> None:
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.abort()
        except Exception:
            pass
        try:
            stream.close()
        except Exception:
            pass

    def close(self) -> None:
        """Stop and release the stream.  Safe to call repeatedly."""
        if self.stream is not None:
            self._teardown()
            log_event("INFO", "Capture", "Microphone released", device=self.device_index)
        with self._lock:
            self._buffer = np.zeros(0, dtype=np.float32)

    def __enter__(self) -> "MicrophoneSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()


__all__ = [
    "CaptureStatus",
    "AudioSource",
    "MicrophoneSource",
    "UnavailableSource",
    "classify_capture_error",
]
