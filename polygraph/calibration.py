"""Personal loudness baseline.

A calibration run records the user speaking a fixed phrase and stores
the mean loudness as the :class:`Baseline` that later sessions are
compared against.  When the run heard nothing above the noise gate the
baseline falls back to a fixed volume and the run is reported as failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .constants import FALLBACK_VOLUME


@dataclass(frozen=True)
class Baseline:
    """Reference loudness.  ``calibrated`` is ``False`` for the fallback."""

    volume: float
    calibrated: bool = True


@dataclass(frozen=True)
class CalibrationResult:
    baseline: Baseline
    succeeded: bool


def compute_baseline(
    measurements: Sequence[float], fallback: float = FALLBACK_VOLUME
) -> CalibrationResult:
    """Derive a baseline from the readings of one calibration run.

    Args:
        measurements: Noise-gated loudness readings.
        fallback: Volume used when ``measurements`` is empty.

    Returns:
        The new baseline and whether calibration succeeded.
    """
    if len(measurements) == 0:
        return CalibrationResult(Baseline(float(fallback), calibrated=False), False)
    volume = float(np.mean(np.asarray(measurements, dtype=np.float64)))
    return CalibrationResult(Baseline(volume, calibrated=True), True)


__all__ = ["Baseline", "CalibrationResult", "compute_baseline"]
