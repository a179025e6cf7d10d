"""Feedback cues played at session transitions.

Each cue is a short oscillator recipe: a waveform, a frequency curve and
a gain envelope.  The curves are rendered with numpy, shaped with
:mod:`scipy.signal` and handed to :func:`sounddevice.play`, which
returns immediately.  Playing a cue is fire-and-forget: an unknown cue or
a failing audio device is logged and otherwise ignored, so feedback can
never affect a session.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

import numpy as np
from scipy.signal import sawtooth, square

from .constants import SAMPLE_RATE
from .logging_utils import log_event

TONE_EVENTS = ("start", "analyzing", "true", "lie", "beep")


class Tones(Protocol):
    def play(self, event: str) -> None: ...


class SilentTones:
    """Cue player that plays nothing."""

    def play(self, event: str) -> None:
        return None


# ─── Curves ───────────────────────────────────────────────────────────────


def _time_axis(duration: float, sample_rate: int) -> np.ndarray:
    return np.arange(int(duration * sample_rate)) / float(sample_rate)


def linear_ramp(t: np.ndarray, start: float, end: float, ramp_end: float) -> np.ndarray:
    """Ramp linearly from ``start`` to ``end`` over ``[0, ramp_end]``, then hold."""
    progress = np.clip(t / ramp_end, 0.0, 1.0)
    return start + (end - start) * progress


def exponential_ramp(
    t: np.ndarray, start: float, end: float, ramp_end: float
) -> np.ndarray:
    """Ramp exponentially from ``start`` to ``end`` over ``[0, ramp_end]``, then hold."""
    progress = np.clip(t / ramp_end, 0.0, 1.0)
    return start * (end / start) ** progress


def stepped(t: np.ndarray, steps: list[tuple[float, float]]) -> np.ndarray:
    """Piecewise-constant curve from ``(at_seconds, value)`` pairs."""
    curve = np.full(t.shape, steps[0][1], dtype=np.float64)
    for at, value in steps[1:]:
        curve[t >= at] = value
    return curve


def oscillate(
    waveform: Callable[[np.ndarray], np.ndarray], frequency: np.ndarray, sample_rate: int
) -> np.ndarray:
    """Render ``waveform`` following a per-sample ``frequency`` curve."""
    phase = 2.0 * np.pi * np.cumsum(frequency) / sample_rate
    return waveform(phase)


# ─── Recipes ──────────────────────────────────────────────────────────────


def render_tone(
    event: str,
    sample_rate: int = SAMPLE_RATE,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Return the float32 samples of cue ``event``.

    Raises:
        KeyError: if ``event`` is not one of :data:`TONE_EVENTS`.
    """
    if event == "beep":
        t = _time_axis(0.1, sample_rate)
        freq = exponential_ramp(t, 800.0, 400.0, 0.1)
        gain = exponential_ramp(t, 0.5, 0.01, 0.1)
        wave = oscillate(np.sin, freq, sample_rate)
    elif event == "start":
        t = _time_axis(0.5, sample_rate)
        freq = linear_ramp(t, 200.0, 800.0, 0.2)
        gain = linear_ramp(t, 0.2, 0.0, 0.5)
        wave = oscillate(square, freq, sample_rate)
    elif event == "analyzing":
        rng = rng if rng is not None else np.random.default_rng()
        t = _time_axis(0.1, sample_rate)
        freq = np.full(t.shape, float(rng.choice([100.0, 200.0, 150.0])))
        gain = linear_ramp(t, 0.03, 0.0, 0.1)
        wave = oscillate(sawtooth, freq, sample_rate)
    elif event == "lie":
        t = _time_axis(1.0, sample_rate)
        freq = linear_ramp(t, 150.0, 100.0, 0.5)
        gain = linear_ramp(t, 0.5, 0.0, 1.0)
        wave = oscillate(sawtooth, freq, sample_rate)
    elif event == "true":
        # A major arpeggio: A4, C#5, E5.
        t = _time_axis(1.0, sample_rate)
        freq = stepped(t, [(0.0, 440.0), (0.2, 554.0), (0.4, 659.0)])
        gain = linear_ramp(t, 0.3, 0.0, 1.0)
        wave = oscillate(np.sin, freq, sample_rate)
    else:
        raise KeyError(event)
    return (wave * gain).astype(np.float32)


class ToneFeedback:
    """Play cues through the default output device without blocking.

    Args:
        sample_rate: Output sampling rate.
        device: Optional sounddevice output device index.
        enabled: When ``False`` :meth:`play` does nothing.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        device: Optional[int] = None,
        *,
        enabled: bool = True,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.device = device
        self.enabled = enabled
        self.rng = rng if rng is not None else np.random.default_rng()
        self._cache: dict[str, np.ndarray] = {}

    def _samples(self, event: str) -> np.ndarray:
        # The analyzing cue picks a random pitch each time.
        if event == "analyzing":
            return render_tone(event, self.sample_rate, self.rng)
        if event not in self._cache:
            self._cache[event] = render_tone(event, self.sample_rate, self.rng)
        return self._cache[event]

    def play(self, event: str) -> None:
        if not self.enabled:
            return
        try:
            samples = self._samples(event)
            import sounddevice as sd

            sd.play(samples, self.sample_rate, device=self.device)
        except KeyError:
            log_event("WARNING", "Tones", "Unknown cue", cue=event)
        except Exception as e:
            log_event("DEBUG", "Tones", "Cue playback failed", cue=event, error=e)

    def stop(self) -> None:
        try:
            import sounddevice as sd

            sd.stop()
        except Exception as e:
            log_event("DEBUG", "Tones", "Stopping playback failed", error=e)


__all__ = [
    "TONE_EVENTS",
    "Tones",
    "SilentTones",
    "ToneFeedback",
    "render_tone",
    "linear_ramp",
    "exponential_ramp",
    "stepped",
    "oscillate",
]
