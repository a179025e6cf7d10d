import numpy as np
import pytest

from polygraph.spectrum import SpectrumAnalyser, reduce_bins


def _sine(freq: float, amplitude: float = 0.5, sr: int = 44_100, n: int = 256) -> np.ndarray:
    t = np.arange(n) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def test_silence_reads_zero() -> None:
    analyser = SpectrumAnalyser()
    bins = analyser.byte_frequency_data(np.zeros(256, dtype=np.float32))
    assert bins.shape == (128,)
    assert bins.dtype == np.uint8
    assert int(bins.max()) == 0
    assert reduce_bins(bins) == 0.0


def test_loud_tone_saturates_its_bin() -> None:
    analyser = SpectrumAnalyser(smoothing=0.0)
    # Bin 10 of a 256-point FFT at 44.1 kHz.
    bins = analyser.byte_frequency_data(_sine(10 * 44_100 / 256))
    assert int(bins[10]) == 255
    assert int(bins[60]) < 255
    assert reduce_bins(bins, "peak") == 255.0
    assert 0.0 < reduce_bins(bins, "mean") < 255.0


def test_louder_input_reads_higher() -> None:
    quiet = SpectrumAnalyser(smoothing=0.0).byte_frequency_data(_sine(1000, 0.001))
    loud = SpectrumAnalyser(smoothing=0.0).byte_frequency_data(_sine(1000, 0.5))
    assert reduce_bins(loud) > reduce_bins(quiet)


def test_short_blocks_are_padded() -> None:
    analyser = SpectrumAnalyser()
    bins = analyser.byte_frequency_data(_sine(1000, n=64))
    assert bins.shape == (128,)


def test_smoothing_and_reset() -> None:
    analyser = SpectrumAnalyser(smoothing=0.8)
    loud = analyser.byte_frequency_data(_sine(1000))
    decayed = analyser.byte_frequency_data(np.zeros(256))
    assert reduce_bins(decayed) > 0.0
    assert reduce_bins(decayed) <= reduce_bins(loud)
    analyser.reset()
    assert reduce_bins(analyser.byte_frequency_data(np.zeros(256))) == 0.0


def test_reductions() -> None:
    bins = np.array([0, 10, 20, 30], dtype=np.uint8)
    assert reduce_bins(bins, "mean") == pytest.approx(15.0)
    assert reduce_bins(bins, "sum") == pytest.approx(60.0)
    assert reduce_bins(bins, "peak") == pytest.approx(30.0)
    assert reduce_bins(np.full(128, 200, dtype=np.uint8), "sum") == 255.0
    assert reduce_bins(np.array([], dtype=np.uint8)) == 0.0


def test_unknown_reduction_rejected() -> None:
    with pytest.raises(ValueError):
        reduce_bins(np.zeros(4), "median")


def test_invalid_configuration_rejected() -> None:
    with pytest.raises(ValueError):
        SpectrumAnalyser(fft_size=1)
    with pytest.raises(ValueError):
        SpectrumAnalyser(min_decibels=-30, max_decibels=-100)
