import sys
import types

import numpy as np
import pytest

from polygraph.tones import TONE_EVENTS, SilentTones, ToneFeedback, render_tone


@pytest.mark.parametrize(
    "event, seconds, peak",
    [
        ("beep", 0.1, 0.5),
        ("start", 0.5, 0.2),
        ("analyzing", 0.1, 0.03),
        ("lie", 1.0, 0.5),
        ("true", 1.0, 0.3),
    ],
)
def test_render_tone_shapes(event: str, seconds: float, peak: float) -> None:
    samples = render_tone(event, sample_rate=8000, rng=np.random.default_rng(0))
    assert samples.dtype == np.float32
    assert samples.size == int(seconds * 8000)
    assert np.max(np.abs(samples)) <= peak + 1e-6
    assert np.max(np.abs(samples)) > 0.0


def test_render_unknown_tone() -> None:
    with pytest.raises(KeyError):
        render_tone("siren")


def test_every_event_has_a_recipe() -> None:
    for event in TONE_EVENTS:
        assert render_tone(event, sample_rate=4000).size > 0


def _install(monkeypatch: pytest.MonkeyPatch, play) -> list:
    calls: list = []
    dummy_sd = types.SimpleNamespace(
        play=lambda data, rate, device=None: (calls.append((data, rate, device)), play())[1],
        stop=lambda: None,
    )
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)
    return calls


def test_play_hands_samples_to_sounddevice(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, lambda: None)
    tones = ToneFeedback(sample_rate=8000, device=2)
    tones.play("true")
    tones.play("true")
    assert len(calls) == 2
    data, rate, device = calls[0]
    assert rate == 8000
    assert device == 2
    assert data.size == 8000


def test_playback_failure_is_swallowed(monkeypatch: pytest.MonkeyPatch) -> None:
    def explode():
        raise RuntimeError("no output device")

    _install(monkeypatch, explode)
    ToneFeedback().play("lie")


def test_unknown_event_is_swallowed(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, lambda: None)
    ToneFeedback().play("siren")
    assert calls == []


def test_disabled_feedback_plays_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install(monkeypatch, lambda: None)
    tones = ToneFeedback(enabled=False)
    for event in TONE_EVENTS:
        tones.play(event)
    assert calls == []
    SilentTones().play("beep")
