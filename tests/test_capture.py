import sys
import types

import numpy as np
import pytest

from polygraph.capture import (
    CaptureStatus,
    MicrophoneSource,
    UnavailableSource,
    classify_capture_error,
)


class PortAudioError(Exception):
    """Shape-compatible stand-in for ``sounddevice.PortAudioError``."""


class DummyStream:
    instances: list["DummyStream"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.started = False
        self.aborted = False
        self.closed = False
        DummyStream.instances.append(self)

    def start(self) -> None:
        self.started = True

    def abort(self) -> None:
        self.aborted = True

    def close(self) -> None:
        self.closed = True


def _install(monkeypatch: pytest.MonkeyPatch, input_stream) -> None:
    DummyStream.instances = []
    dummy_sd = types.SimpleNamespace(InputStream=input_stream, PortAudioError=PortAudioError)
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)


def test_open_grants_and_close_releases(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, DummyStream)
    source = MicrophoneSource(device_index=3, block_size=128)
    assert source.open() is CaptureStatus.GRANTED
    stream = DummyStream.instances[0]
    assert stream.started
    assert stream.kwargs["device"] == 3
    assert stream.kwargs["blocksize"] == 128
    source.close()
    assert stream.aborted and stream.closed
    assert source.stream is None
    source.close()


def test_callback_keeps_latest_mono_window(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, DummyStream)
    source = MicrophoneSource(channels=2, window=256)
    source.open()
    assert source.read() is None
    rng = np.random.default_rng(0)
    for _ in range(3):
        source._callback(rng.normal(size=(128, 2)).astype(np.float32), 128, None, None)
    block = source.read()
    assert block is not None
    assert block.shape == (256,)
    assert block.dtype == np.float32
    source.close()
    assert source.read() is None


def test_high_pass_removes_dc(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, DummyStream)
    source = MicrophoneSource(window=512)
    source.open()
    for _ in range(40):
        source._callback(np.ones((512, 1), dtype=np.float32), 512, None, None)
    block = source.read()
    assert np.max(np.abs(block)) < 0.01


@pytest.mark.parametrize(
    "error, expected",
    [
        (PortAudioError("Device unavailable", -9985), CaptureStatus.BUSY),
        (PortAudioError("Error opening InputStream: device busy", -9999), CaptureStatus.BUSY),
        (PortAudioError("Invalid device", -9996), CaptureStatus.DENIED),
        (PermissionError("permission denied"), CaptureStatus.DENIED),
        (OSError("PortAudio library not found"), CaptureStatus.DENIED),
    ],
)
def test_open_failures_are_classified(
    monkeypatch: pytest.MonkeyPatch, error: Exception, expected: CaptureStatus
) -> None:
    def refuse(**_):
        raise error

    _install(monkeypatch, refuse)
    source = MicrophoneSource()
    assert source.open() is expected
    assert source.status is expected
    assert source.stream is None
    assert source.read() is None
    source.close()


def test_classify_capture_error() -> None:
    assert classify_capture_error(PortAudioError("x", -9985)) is CaptureStatus.BUSY
    assert classify_capture_error(RuntimeError()) is CaptureStatus.DENIED


def test_context_manager(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, DummyStream)
    with MicrophoneSource() as source:
        assert source.status is CaptureStatus.GRANTED
    assert DummyStream.instances[0].closed


def test_unavailable_source() -> None:
    source = UnavailableSource(CaptureStatus.BUSY)
    assert source.open() is CaptureStatus.BUSY
    assert source.read() is None
    source.close()
