"""Noise-gated accumulation of loudness readings.

The collector receives every reading the sampler produces but only keeps
those at or above a fixed silence threshold, and only while a run
(analysis or calibration) is in progress.  It gates on level alone and
never looks at the shape of the signal.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .constants import SILENCE_THRESHOLD


class MeasurementCollector:
    """Gate readings below ``threshold`` and keep the rest for one run.

    Parameters
    ----------
    threshold:
        Readings strictly below this value on the 0..255 scale are
        discarded as silence.
    """

    def __init__(self, threshold: float = SILENCE_THRESHOLD) -> None:
        self.threshold: float = float(threshold)
        self.active: bool = False
        self._values: list[float] = []

    def begin(self) -> None:
        """Start a run with an empty measurement set."""
        self._values = []
        self.active = True

    def stop(self) -> None:
        """Stop accepting readings; the set stays readable."""
        self.active = False

    def discard(self) -> None:
        """Drop the measurements of a finished run."""
        self.active = False
        self._values = []

    def is_silent(self, sample: float) -> bool:
        return sample < self.threshold

    def feed(self, sample: float) -> bool:
        """Offer a reading; return ``True`` if it was kept."""
        if not self.active or self.is_silent(sample):
            return False
        self._values.append(float(sample))
        return True

    @property
    def measurements(self) -> tuple[float, ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def mean(self) -> Optional[float]:
        """Arithmetic mean of the set, ``None`` when it is empty."""
        if not self._values:
            return None
        return float(np.mean(self._values))


__all__ = ["MeasurementCollector"]
