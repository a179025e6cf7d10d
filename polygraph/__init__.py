"""Polygraph package."""

from .calibration import Baseline, CalibrationResult, compute_baseline
from .capture import CaptureStatus, MicrophoneSource, UnavailableSource
from .collector import MeasurementCollector
from .decision import DecisionEngine, Verdict, forced_outcome_from_position
from .sampler import AudioSampler
from .scheduler import ManualScheduler, Scheduler
from .session import MiddleBand, SessionController, SessionListener, SessionPhase
from .spectrum import SpectrumAnalyser, reduce_bins
from .tones import SilentTones, ToneFeedback

__all__ = [
    "AudioSampler",
    "Baseline",
    "CalibrationResult",
    "CaptureStatus",
    "DecisionEngine",
    "ManualScheduler",
    "MeasurementCollector",
    "MicrophoneSource",
    "MiddleBand",
    "Scheduler",
    "SessionController",
    "SessionListener",
    "SessionPhase",
    "SilentTones",
    "SpectrumAnalyser",
    "ToneFeedback",
    "UnavailableSource",
    "Verdict",
    "compute_baseline",
    "forced_outcome_from_position",
    "reduce_bins",
]
