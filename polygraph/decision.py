"""Verdict rules.

A verdict is either rigged by where the fingerprint pad was touched or
computed from the session's loudness readings against the calibrated
baseline.  The rule is deliberately crude.  In priority order:

1. a forced outcome wins unconditionally;
2. without a baseline the verdict is a coin flip;
3. a session that never rose above the noise gate is a lie;
4. a session whose mean loudness exceeds ``baseline * lie_ratio`` is a
   lie, anything else (including exact equality) is true.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .calibration import Baseline
from .constants import LIE_RATIO, LIE_ZONE, TRUE_ZONE


class Verdict(str, Enum):
    TRUE = "TRUE"
    LIE = "LIE"


def forced_outcome_from_position(
    ratio: float,
    true_zone: float = TRUE_ZONE,
    lie_zone: float = LIE_ZONE,
) -> Optional[Verdict]:
    """Return the outcome rigged by a touch at ``ratio`` across the pad.

    ``ratio`` is the horizontal position divided by the pad width.  The
    band between ``true_zone`` and ``lie_zone`` (inclusive) rigs nothing.
    """
    if ratio < true_zone:
        return Verdict.TRUE
    if ratio > lie_zone:
        return Verdict.LIE
    return None


def coin_flip(rng: np.random.Generator) -> Verdict:
    return Verdict.TRUE if rng.random() < 0.5 else Verdict.LIE


class DecisionEngine:
    """Turn a forced outcome or a measurement set into a :class:`Verdict`.

    Args:
        rng: Random generator for the no-baseline coin flip.
        lie_ratio: Multiplier over the baseline above which a session is
            a lie.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        lie_ratio: float = LIE_RATIO,
    ) -> None:
        self.rng = rng if rng is not None else np.random.default_rng()
        self.lie_ratio = float(lie_ratio)
        self.calls = 0

    def decide(
        self,
        forced: Optional[Verdict],
        baseline: Optional[Baseline],
        measurements: Sequence[float],
    ) -> Verdict:
        self.calls += 1
        if forced is not None:
            return forced
        if baseline is None:
            return coin_flip(self.rng)
        if len(measurements) == 0:
            return Verdict.LIE
        current_avg = float(np.mean(np.asarray(measurements, dtype=np.float64)))
        if current_avg > baseline.volume * self.lie_ratio:
            return Verdict.LIE
        return Verdict.TRUE


__all__ = ["Verdict", "forced_outcome_from_position", "coin_flip", "DecisionEngine"]
