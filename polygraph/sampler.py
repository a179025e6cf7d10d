"""Audio sampler: a live stream of loudness readings.

While active, the sampler ticks at the host's refresh cadence.  Each
tick pulls the next reading from :meth:`AudioSampler.iter_samples`, a
lazy generator that reads the source's latest window, runs it through
the :class:`~polygraph.spectrum.SpectrumAnalyser` and reduces the bins to
a scalar in ``[0, 255]``.  Readings are published to subscribers.

The number of readings per second depends on how often the host lets
the tick run, so callers must not rely on exact counts.
"""

from __future__ import annotations

from typing import Callable, Generator, Optional

import numpy as np

from .capture import AudioSource, CaptureStatus
from .constants import REDUCTION, REFRESH_INTERVAL_MS
from .logging_utils import log_event
from .scheduler import Scheduler, TimerHandle
from .spectrum import REDUCTIONS, SpectrumAnalyser, reduce_bins

SampleCallback = Callable[[float], None]


class AudioSampler:
    """Periodically sample an :class:`AudioSource` and publish loudness.

    Args:
        scheduler: Host timers driving the sampling tick.
        analyser: Spectrum analyser; a fresh one is created when omitted.
        reduction: How bins become a reading (``mean``, ``sum``, ``peak``).
        refresh_interval_ms: Tick interval, normally one display frame.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        analyser: Optional[SpectrumAnalyser] = None,
        *,
        reduction: str = REDUCTION,
        refresh_interval_ms: float = REFRESH_INTERVAL_MS,
    ) -> None:
        if reduction not in REDUCTIONS:
            raise ValueError(f"unknown reduction {reduction!r}")
        self.scheduler = scheduler
        self.analyser = analyser if analyser is not None else SpectrumAnalyser()
        self.reduction = reduction
        self.refresh_interval_ms = refresh_interval_ms
        self.source: Optional[AudioSource] = None
        self.status: Optional[CaptureStatus] = None
        self.latest: Optional[float] = None
        self.snapshot: Optional[np.ndarray] = None
        self._subscribers: list[SampleCallback] = []
        self._ticker: Optional[TimerHandle] = None
        self._stream: Optional[Generator[Optional[float], None, None]] = None

    # --------------------------------------------------------------
    @property
    def active(self) -> bool:
        return self._ticker is not None

    def subscribe(self, callback: SampleCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: SampleCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # --------------------------------------------------------------
    def iter_samples(self) -> Generator[Optional[float], None, None]:
        """Yield one reading per step for as long as the source is granted.

        The generator ends immediately for a refused or busy source, and
        yields ``None`` on steps where the source has no audio yet.
        """
        if self.source is None or self.status is not CaptureStatus.GRANTED:
            return
        while True:
            block = self.source.read()
            if block is None:
                yield None
                continue
            bins = self.analyser.byte_frequency_data(block)
            self.snapshot = bins
            yield reduce_bins(bins, self.reduction)

    def activate(self, source: AudioSource) -> CaptureStatus:
        """Open ``source`` and start ticking.  Restarts if already active."""
        self.deactivate()
        self.source = source
        self.latest = None
        self.snapshot = None
        self.analyser.reset()
        try:
            self.status = source.open()
        except Exception as e:
            log_event("WARNING", "Sampler", "Source failed to open", error=e)
            self.status = CaptureStatus.DENIED
        if self.status is not CaptureStatus.GRANTED:
            log_event("INFO", "Sampler", "Sampling silence", status=self.status.value)
        self._stream = self.iter_samples()
        self._ticker = self.scheduler.call_every(self.refresh_interval_ms, self.tick)
        return self.status

    def tick(self) -> Optional[float]:
        """Advance the stream by one step and publish the reading, if any."""
        if self._stream is None:
            return None
        sample = next(self._stream, None)
        if sample is None:
            return None
        self.latest = sample
        for callback in list(self._subscribers):
            callback(sample)
        return sample

    def deactivate(self) -> None:
        """Cancel the tick and release the source."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
        source, self.source = self.source, None
        if source is not None:
            try:
                source.close()
            except Exception as e:
                log_event("WARNING", "Sampler", "Source failed to close", error=e)


__all__ = ["AudioSampler", "SampleCallback"]
