"""Session state machine of the polygraph kiosk.

:class:`SessionController` owns everything a session needs: the audio
sampler, the noise-gated collector, the decision engine, the calibrated
baseline and the timers.  The presentation layer holds a reference to
one controller per process, reads its state and calls exactly three
operations on it: :meth:`~SessionController.start` with the touch
position, :meth:`~SessionController.reset` and
:meth:`~SessionController.calibrate`.

Phases::

    IDLE ──start──▶ ANALYZING ──(countdown)──▶ RESULT_TRUE | RESULT_LIE
      ▲                 │                              │
      └─────reset───────┴──────────reset───────────────┘

    IDLE ──calibrate──▶ CALIBRATING ──(countdown)──▶ IDLE

Only one run is ever in flight.  Every path out of ``ANALYZING`` or
``CALIBRATING`` goes through :meth:`SessionController._stop_run`, which
cancels the countdown and the status ticker, stops sampling and
releases the microphone.  Timer callbacks additionally check the phase
they were started for, so a late tick is a no-op.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from .calibration import Baseline, compute_baseline
from .capture import AudioSource, CaptureStatus, UnavailableSource
from .collector import MeasurementCollector
from .constants import (
    ANALYSIS_DURATION_MS,
    CALIBRATION_DONE_TEXT,
    CALIBRATION_DURATION_MS,
    CALIBRATION_FAILED_TEXT,
    CALIBRATION_PROMPT,
    FALLBACK_VOLUME,
    INITIAL_TEXT,
    LIE_RATIO,
    LIE_ZONE,
    READY_TEXT,
    REDUCTION,
    REFRESH_INTERVAL_MS,
    SILENCE_THRESHOLD,
    STATUS_INTERVAL_MS,
    STATUS_TEXTS,
    TRUE_ZONE,
)
from .decision import DecisionEngine, Verdict, coin_flip, forced_outcome_from_position
from .logging_utils import log_event
from .sampler import AudioSampler
from .scheduler import Scheduler, TimerHandle
from .spectrum import SpectrumAnalyser
from .tones import SilentTones, Tones

SourceFactory = Callable[[], AudioSource]


class SessionPhase(str, Enum):
    IDLE = "IDLE"
    CALIBRATING = "CALIBRATING"
    ANALYZING = "ANALYZING"
    RESULT_TRUE = "RESULT_TRUE"
    RESULT_LIE = "RESULT_LIE"


class MiddleBand(str, Enum):
    """What a touch in the middle band of the pad does.

    ``DEFER`` leaves the verdict to the decision engine (coin flip
    without a baseline, loudness heuristic with one).  ``RANDOM`` flips
    the coin at touch time and ignores the microphone entirely.
    """

    DEFER = "defer"
    RANDOM = "random"


class SessionListener:
    """Receives read-only state updates.  Override what you need."""

    def on_phase_changed(self, phase: SessionPhase) -> None:
        pass

    def on_status_changed(self, text: str) -> None:
        pass

    def on_notice(self, text: str) -> None:
        pass

    def on_sample(self, level: float) -> None:
        pass


class SessionController:
    """Own one kiosk's session lifecycle.

    Args:
        scheduler: Host timers for countdowns, ticker and sampling.
        source_factory: Called on every activation to obtain a fresh
            :class:`~polygraph.capture.AudioSource`.
        tones: Feedback cue player; silent by default.
        rng: Random generator shared by coin flips and status texts.
        middle_band: Behaviour of the middle gesture band.

    The remaining keyword arguments override the defaults in
    :mod:`polygraph.constants`.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        source_factory: SourceFactory,
        *,
        tones: Optional[Tones] = None,
        rng: Optional[np.random.Generator] = None,
        middle_band: MiddleBand = MiddleBand.DEFER,
        analyser: Optional[SpectrumAnalyser] = None,
        reduction: str = REDUCTION,
        refresh_interval_ms: float = REFRESH_INTERVAL_MS,
        silence_threshold: float = SILENCE_THRESHOLD,
        analysis_duration_ms: float = ANALYSIS_DURATION_MS,
        status_interval_ms: float = STATUS_INTERVAL_MS,
        calibration_duration_ms: float = CALIBRATION_DURATION_MS,
        fallback_volume: float = FALLBACK_VOLUME,
        lie_ratio: float = LIE_RATIO,
        true_zone: float = TRUE_ZONE,
        lie_zone: float = LIE_ZONE,
        status_texts: Sequence[str] = STATUS_TEXTS,
    ) -> None:
        self.scheduler = scheduler
        self.source_factory = source_factory
        self.tones: Tones = tones if tones is not None else SilentTones()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.middle_band = MiddleBand(middle_band)
        self.analysis_duration_ms = analysis_duration_ms
        self.status_interval_ms = status_interval_ms
        self.calibration_duration_ms = calibration_duration_ms
        self.fallback_volume = fallback_volume
        self.true_zone = true_zone
        self.lie_zone = lie_zone
        self.status_texts = tuple(status_texts) or STATUS_TEXTS

        self.sampler = AudioSampler(
            scheduler,
            analyser,
            reduction=reduction,
            refresh_interval_ms=refresh_interval_ms,
        )
        self.collector = MeasurementCollector(silence_threshold)
        self.engine = DecisionEngine(self.rng, lie_ratio)
        self.sampler.subscribe(self._on_sample)

        self.baseline: Optional[Baseline] = None
        self.forced_outcome: Optional[Verdict] = None
        self.verdict: Optional[Verdict] = None
        self.capture_status: Optional[CaptureStatus] = None
        self._phase = SessionPhase.IDLE
        self._status = READY_TEXT
        self._notice = ""
        self._countdown: Optional[TimerHandle] = None
        self._ticker: Optional[TimerHandle] = None
        self._listeners: list[SessionListener] = []
        self._lock = threading.RLock()

    # ─── Read-only state ────────────────────────────────────────────────

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def status(self) -> str:
        return self._status

    @property
    def notice(self) -> str:
        return self._notice

    @property
    def measurements(self) -> tuple[float, ...]:
        return self.collector.measurements

    @property
    def latest_sample(self) -> Optional[float]:
        return self.sampler.latest

    @property
    def snapshot(self) -> Optional[np.ndarray]:
        return self.sampler.snapshot

    @property
    def busy(self) -> bool:
        """``True`` while a timed run is in flight."""
        return self._phase in (SessionPhase.ANALYZING, SessionPhase.CALIBRATING)

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ─── Notifications ──────────────────────────────────────────────────

    def _notify(self, callback: str, value) -> None:
        # A failing listener must not interrupt a transition half-way.
        for listener in list(self._listeners):
            try:
                getattr(listener, callback)(value)
            except Exception as e:
                log_event(
                    "WARNING",
                    "Session",
                    "Listener failed",
                    listener=type(listener).__name__,
                    callback=callback,
                    error=e,
                )

    def _set_phase(self, phase: SessionPhase) -> None:
        if phase is self._phase:
            return
        log_event("INFO", "Session", "Phase change", old=self._phase.value, new=phase.value)
        self._phase = phase
        self._notify("on_phase_changed", phase)

    def _set_status(self, text: str) -> None:
        self._status = text
        self._notify("on_status_changed", text)

    def _set_notice(self, text: str) -> None:
        self._notice = text
        self._notify("on_notice", text)

    def _on_sample(self, level: float) -> None:
        self.collector.feed(level)
        self._notify("on_sample", level)

    def _cue(self, event: str) -> None:
        try:
            self.tones.play(event)
        except Exception as e:
            log_event("DEBUG", "Session", "Cue failed", cue=event, error=e)

    # ─── Run plumbing ───────────────────────────────────────────────────

    def _begin_run(self) -> None:
        self.collector.begin()
        try:
            source = self.source_factory()
        except Exception as e:
            log_event("WARNING", "Session", "No audio source", error=e)
            source = UnavailableSource()
        self.capture_status = self.sampler.activate(source)

    def _stop_run(self) -> None:
        for timer in (self._countdown, self._ticker):
            if timer is not None:
                timer.cancel()
        self._countdown = None
        self._ticker = None
        self.sampler.deactivate()
        self.collector.stop()

    # ─── Analysis ───────────────────────────────────────────────────────

    def start(self, ratio: float) -> bool:
        """Begin a session from a touch at ``ratio`` across the pad.

        Returns ``False`` without changing anything when a run is already
        in flight or a result is still on screen.
        """
        with self._lock:
            if self._phase is not SessionPhase.IDLE:
                log_event("DEBUG", "Session", "Start ignored", phase=self._phase.value)
                return False

            forced = forced_outcome_from_position(ratio, self.true_zone, self.lie_zone)
            if forced is None and self.middle_band is MiddleBand.RANDOM:
                forced = coin_flip(self.rng)
            self.forced_outcome = forced
            self.verdict = None
            log_event(
                "INFO",
                "Session",
                "Session started",
                ratio=f"{ratio:.3f}",
                forced=forced.value if forced else None,
            )

            self._cue("start")
            self._set_notice("")
            self._begin_run()
            self._set_phase(SessionPhase.ANALYZING)
            self._set_status(INITIAL_TEXT)
            self._countdown = self.scheduler.call_later(
                self.analysis_duration_ms, self._finish_analysis
            )
            self._ticker = self.scheduler.call_every(
                self.status_interval_ms, self._tick_status
            )
            return True

    def _tick_status(self) -> None:
        with self._lock:
            if self._phase is not SessionPhase.ANALYZING:
                return
            text = self.status_texts[int(self.rng.integers(len(self.status_texts)))]
            self._set_status(text)
            self._cue("analyzing")

    def _finish_analysis(self) -> None:
        with self._lock:
            if self._phase is not SessionPhase.ANALYZING:
                return
            self._stop_run()
            verdict = self.engine.decide(
                self.forced_outcome, self.baseline, self.collector.measurements
            )
            self.verdict = verdict
            log_event(
                "INFO",
                "Session",
                "Verdict",
                verdict=verdict.value,
                samples=len(self.collector),
                mean=self.collector.mean(),
                baseline=self.baseline.volume if self.baseline else None,
            )
            if verdict is Verdict.TRUE:
                self._set_phase(SessionPhase.RESULT_TRUE)
                self._cue("true")
            else:
                self._set_phase(SessionPhase.RESULT_LIE)
                self._cue("lie")

    # ─── Reset ──────────────────────────────────────────────────────────

    def reset(self) -> bool:
        """Return to ``IDLE``, abandoning any run in flight.

        A run cancelled this way never reaches the decision engine and
        leaves the baseline untouched.
        """
        with self._lock:
            if self._phase is SessionPhase.IDLE:
                return False
            if self.busy:
                log_event("INFO", "Session", "Run cancelled", phase=self._phase.value)
                self._stop_run()
            self.collector.discard()
            self.forced_outcome = None
            self.verdict = None
            self._set_notice("")
            self._set_status(READY_TEXT)
            self._set_phase(SessionPhase.IDLE)
            return True

    # ─── Calibration ────────────────────────────────────────────────────

    def calibrate(self) -> bool:
        """Record a new baseline.  Only allowed from ``IDLE``."""
        with self._lock:
            if self._phase is not SessionPhase.IDLE:
                log_event("DEBUG", "Session", "Calibration ignored", phase=self._phase.value)
                return False
            self._set_notice("")
            self._begin_run()
            self._set_phase(SessionPhase.CALIBRATING)
            self._set_status(CALIBRATION_PROMPT)
            self._cue("beep")
            self._countdown = self.scheduler.call_later(
                self.calibration_duration_ms, self._finish_calibration
            )
            return True

    def _finish_calibration(self) -> None:
        with self._lock:
            if self._phase is not SessionPhase.CALIBRATING:
                return
            self._stop_run()
            result = compute_baseline(self.collector.measurements, self.fallback_volume)
            self.baseline = result.baseline
            self.collector.discard()
            if result.succeeded:
                log_event("INFO", "Session", "Calibrated", volume=f"{result.baseline.volume:.2f}")
                self._set_notice(CALIBRATION_DONE_TEXT)
            else:
                log_event(
                    "WARNING",
                    "Session",
                    "Calibration heard nothing, using fallback",
                    volume=result.baseline.volume,
                )
                self._set_notice(CALIBRATION_FAILED_TEXT)
            self._cue("beep")
            self._set_status(READY_TEXT)
            self._set_phase(SessionPhase.IDLE)

    # ─── Teardown ───────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Abandon any run and release the microphone."""
        with self._lock:
            if self._phase is not SessionPhase.IDLE:
                self.reset()
            self._stop_run()


__all__ = [
    "SessionPhase",
    "MiddleBand",
    "SessionListener",
    "SessionController",
    "SourceFactory",
]
