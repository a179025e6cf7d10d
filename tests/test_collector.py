import pytest

from polygraph.calibration import compute_baseline
from polygraph.collector import MeasurementCollector
from polygraph.constants import FALLBACK_VOLUME, SILENCE_THRESHOLD


def test_default_silence_threshold() -> None:
    assert SILENCE_THRESHOLD == pytest.approx(5.0)
    assert MeasurementCollector().threshold == pytest.approx(5.0)


def test_noise_gate_discards_quiet_readings() -> None:
    collector = MeasurementCollector()
    collector.begin()
    for sample in (0.0, 4.9, 5.0, 12.0, 3.0, 255.0):
        collector.feed(sample)
    assert collector.measurements == (5.0, 12.0, 255.0)
    assert collector.mean() == pytest.approx(272.0 / 3)


def test_readings_outside_a_run_are_ignored() -> None:
    collector = MeasurementCollector()
    assert collector.feed(100.0) is False
    collector.begin()
    assert collector.feed(100.0) is True
    collector.stop()
    assert collector.feed(100.0) is False
    assert collector.measurements == (100.0,)


def test_begin_clears_previous_run() -> None:
    collector = MeasurementCollector()
    collector.begin()
    collector.feed(42.0)
    collector.stop()
    collector.begin()
    assert collector.measurements == ()
    assert collector.mean() is None


def test_discard_drops_measurements() -> None:
    collector = MeasurementCollector(threshold=10)
    collector.begin()
    collector.feed(20.0)
    collector.discard()
    assert len(collector) == 0
    assert collector.active is False


def test_baseline_is_mean_of_calibration_run() -> None:
    result = compute_baseline([40.0, 60.0])
    assert result.succeeded
    assert result.baseline.volume == pytest.approx(50.0)
    assert result.baseline.calibrated


def test_empty_calibration_falls_back() -> None:
    result = compute_baseline([])
    assert not result.succeeded
    assert result.baseline.volume == pytest.approx(FALLBACK_VOLUME)
    assert result.baseline.volume == pytest.approx(50.0)
    assert not result.baseline.calibrated
