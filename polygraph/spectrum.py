"""Frequency-domain loudness measurement.

:class:`SpectrumAnalyser` turns a window of audio into a snapshot of
byte-scaled frequency bins, the same representation browser analyser
nodes expose: the window is Blackman-weighted, transformed with a real
FFT, smoothed over time per bin, converted to decibels and mapped
linearly from ``[min_decibels, max_decibels]`` onto ``0..255``.

:func:`reduce_bins` collapses one snapshot into a single loudness
reading on the same scale.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.signal import get_window

from .constants import (
    FFT_SIZE,
    MAX_DECIBELS,
    MIN_DECIBELS,
    REDUCTION,
    SMOOTHING_TIME_CONSTANT,
)

REDUCTIONS = ("mean", "sum", "peak")


def reduce_bins(bins: np.ndarray, method: str = REDUCTION) -> float:
    """Return one loudness value in ``[0, 255]`` for a snapshot of ``bins``.

    Parameters
    ----------
    bins:
        Byte-scaled magnitudes, as produced by
        :meth:`SpectrumAnalyser.byte_frequency_data`.
    method:
        ``"mean"`` averages the bins, ``"sum"`` adds them and
        ``"peak"`` takes the loudest bin.

    Returns
    -------
    float
        The reduced value, clipped to ``[0, 255]``.  An empty snapshot
        reads as ``0.0``.
    """
    if method not in REDUCTIONS:
        raise ValueError(f"unknown reduction {method!r}; expected one of {REDUCTIONS}")
    if bins.size == 0:
        return 0.0
    if method == "mean":
        value = float(np.mean(bins))
    elif method == "sum":
        value = float(np.sum(bins))
    else:
        value = float(np.max(bins))
    return float(min(max(value, 0.0), 255.0))


class SpectrumAnalyser:
    """Byte-scaled magnitude spectrum with temporal smoothing.

    Args:
        fft_size: Window length; the analyser reports ``fft_size // 2`` bins.
        smoothing: Weight of the previous snapshot, in ``[0, 1)``.
        min_decibels: Level that maps to 0.
        max_decibels: Level that maps to 255.
    """

    def __init__(
        self,
        fft_size: int = FFT_SIZE,
        *,
        smoothing: float = SMOOTHING_TIME_CONSTANT,
        min_decibels: float = MIN_DECIBELS,
        max_decibels: float = MAX_DECIBELS,
    ) -> None:
        if fft_size < 2:
            raise ValueError("fft_size must be at least 2")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must exceed min_decibels")
        self.fft_size = fft_size
        self.smoothing = min(max(float(smoothing), 0.0), 0.999)
        self.min_decibels = float(min_decibels)
        self.max_decibels = float(max_decibels)
        self.window = get_window("blackman", fft_size, fftbins=False)
        self._previous: Optional[np.ndarray] = None

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        """Forget the smoothing history."""
        self._previous = None

    def byte_frequency_data(self, block: np.ndarray) -> np.ndarray:
        """Return ``bin_count`` bytes describing the spectrum of ``block``.

        Blocks shorter than ``fft_size`` are zero-padded at the front so
        the most recent audio lines up with the end of the window.
        """
        samples = np.asarray(block, dtype=np.float64).reshape(-1)[-self.fft_size :]
        if samples.size < self.fft_size:
            samples = np.concatenate([np.zeros(self.fft_size - samples.size), samples])

        spectrum = np.abs(np.fft.rfft(samples * self.window))[: self.bin_count]
        magnitude = spectrum / self.fft_size
        if self._previous is not None:
            magnitude = self.smoothing * self._previous + (1.0 - self.smoothing) * magnitude
        self._previous = magnitude

        decibels = 20.0 * np.log10(np.maximum(magnitude, 1e-12))
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (decibels - self.min_decibels))
        return np.clip(scaled, 0, 255).astype(np.uint8)


__all__ = ["REDUCTIONS", "reduce_bins", "SpectrumAnalyser"]
