"""Application-wide constants used by the polygraph session engine.

The values in this module configure the audio pipeline, the noise gate,
the session timings and the decision heuristic.  Together they are the
entire "sensitivity" of the kiosk, so they are kept in one place rather
than spread through the code base.  The GUI lets an operator override
most of them and persists the overrides with ``QSettings``.
"""

from __future__ import annotations

# ─── Audio capture ────────────────────────────────────────────────────────

# Sampling frequency of the microphone stream.
SAMPLE_RATE: int = 44_100

# Number of frames PortAudio hands to the stream callback at once.
BLOCK_SIZE: int = 512

# Cutoff frequency for the high‑pass filter used to remove low‑frequency
# rumble and mains hum before the spectrum is measured.
HP_FILTER_CUTOFF: float = 60.0

# ─── Spectrum analysis ────────────────────────────────────────────────────

# Analysis window.  The analyser reports ``FFT_SIZE // 2`` frequency bins,
# each scaled to a byte in ``0..255``.
FFT_SIZE: int = 256

# Weight of the previous snapshot when smoothing each bin over time.
SMOOTHING_TIME_CONSTANT: float = 0.8

# Decibel range mapped linearly onto ``0..255``.  Anything quieter than
# ``MIN_DECIBELS`` reads as 0, anything louder than ``MAX_DECIBELS`` as 255.
MIN_DECIBELS: float = -100.0
MAX_DECIBELS: float = -30.0

# How a snapshot of bins becomes one loudness reading: ``"mean"``,
# ``"sum"`` (clipped to 255) or ``"peak"``.
REDUCTION: str = "mean"

# Sampling tick used when the display refresh rate is unknown (~60 Hz).
REFRESH_INTERVAL_MS: int = 16

# ─── Noise gate ───────────────────────────────────────────────────────────

# Readings below this value on the 0..255 scale are treated as silence
# and never reach the measurement set.
SILENCE_THRESHOLD: float = 5.0

# ─── Session timings (milliseconds) ───────────────────────────────────────

ANALYSIS_DURATION_MS: int = 4000
STATUS_INTERVAL_MS: int = 500
CALIBRATION_DURATION_MS: int = 3000

# ─── Decision heuristic ───────────────────────────────────────────────────

# Baseline used when calibration heard nothing above the noise gate.
FALLBACK_VOLUME: float = 50.0

# A session is a lie when its mean loudness exceeds the baseline by more
# than this factor.
LIE_RATIO: float = 1.2

# Gesture bands across the fingerprint pad.  Left of ``TRUE_ZONE`` is
# rigged to TRUE, right of ``LIE_ZONE`` is rigged to LIE.
TRUE_ZONE: float = 0.4
LIE_ZONE: float = 0.6

# ─── Texts ────────────────────────────────────────────────────────────────

READY_TEXT: str = "READY"
INITIAL_TEXT: str = "INITIALIZING..."

STATUS_TEXTS: tuple[str, ...] = (
    "READING BIOMETRICS...",
    "ANALYZING MICRO-TREMORS...",
    "CHECKING VOICE PATTERN...",
    "CROSS-REFERENCING DATABASE...",
    "DETECTING SWEAT RESPONSE...",
    "CALCULATING PROBABILITY...",
)

CALIBRATION_PHRASE: str = "MY NAME IS ... AND I ALWAYS TELL THE TRUTH"
CALIBRATION_PROMPT: str = f'SAY: "{CALIBRATION_PHRASE}"'
CALIBRATION_DONE_TEXT: str = "CALIBRATION COMPLETE"
CALIBRATION_FAILED_TEXT: str = "CALIBRATION FAILED: VOLUME TOO LOW"

__all__ = [
    "SAMPLE_RATE",
    "BLOCK_SIZE",
    "HP_FILTER_CUTOFF",
    "FFT_SIZE",
    "SMOOTHING_TIME_CONSTANT",
    "MIN_DECIBELS",
    "MAX_DECIBELS",
    "REDUCTION",
    "REFRESH_INTERVAL_MS",
    "SILENCE_THRESHOLD",
    "ANALYSIS_DURATION_MS",
    "STATUS_INTERVAL_MS",
    "CALIBRATION_DURATION_MS",
    "FALLBACK_VOLUME",
    "LIE_RATIO",
    "TRUE_ZONE",
    "LIE_ZONE",
    "READY_TEXT",
    "INITIAL_TEXT",
    "STATUS_TEXTS",
    "CALIBRATION_PHRASE",
    "CALIBRATION_PROMPT",
    "CALIBRATION_DONE_TEXT",
    "CALIBRATION_FAILED_TEXT",
]
