"""Touch handling and page flow of the kiosk window, rendered offscreen."""

import logging
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

pytest.importorskip("PySide6.QtWidgets")
pytest.importorskip("PySide6.QtTest")
pytest.importorskip("q_materialise")

from PySide6 import QtCore, QtTest, QtWidgets  # noqa: E402

from polygraph.gui import MainWindow  # noqa: E402
from polygraph.logging_utils import logger  # noqa: E402
from polygraph.scheduler import ManualScheduler  # noqa: E402
from polygraph.session import SessionPhase  # noqa: E402


def _refuse_stream(**_kwargs):
    raise RuntimeError("Error opening InputStream: Unanticipated host error")


@pytest.fixture
def app() -> QtWidgets.QApplication:
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture
def settings(tmp_path: Path) -> QtCore.QSettings:
    settings = QtCore.QSettings(
        str(tmp_path / "polygraph.ini"), QtCore.QSettings.Format.IniFormat
    )
    settings.setValue("sounds_enabled", False)
    return settings


@pytest.fixture
def window(app, settings, monkeypatch: pytest.MonkeyPatch):
    dummy_sd = SimpleNamespace(
        InputStream=_refuse_stream,
        play=lambda *a, **k: None,
        stop=lambda: None,
        query_devices=lambda: [],
    )
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)
    level = logger.level
    scheduler = ManualScheduler()
    win = MainWindow(settings=settings, scheduler=scheduler)
    win.resize(800, 600)
    win.show()
    yield win, scheduler
    win.close()
    logger.setLevel(level)


def _click_pad(win: MainWindow, fraction: float) -> list:
    ratios: list = []
    win.pad.pressedAt.connect(ratios.append)
    x = int(win.pad.width() * fraction)
    QtTest.QTest.mouseClick(
        win.pad,
        QtCore.Qt.MouseButton.LeftButton,
        QtCore.Qt.KeyboardModifier.NoModifier,
        QtCore.QPoint(x, win.pad.height() // 2),
    )
    return ratios


def test_left_edge_touch_reaches_the_true_page(window) -> None:
    win, scheduler = window
    assert win.pages.currentIndex() == 0

    ratios = _click_pad(win, 0.05)
    assert len(ratios) == 1
    assert ratios[0] < 0.4
    assert win.controller.phase is SessionPhase.ANALYZING
    assert win.pages.currentIndex() == 1

    scheduler.advance(win.controller.analysis_duration_ms)
    assert win.controller.phase is SessionPhase.RESULT_TRUE
    assert win.pages.currentWidget() is win.true_page


def test_right_edge_touch_reaches_the_lie_page_and_resets(window) -> None:
    win, scheduler = window
    ratios = _click_pad(win, 0.95)
    assert ratios[0] > 0.6

    scheduler.advance(win.controller.analysis_duration_ms)
    assert win.pages.currentWidget() is win.lie_page

    win._on_reset()
    assert win.controller.phase is SessionPhase.IDLE
    assert win.pages.currentIndex() == 0
    assert scheduler.pending == 0


def test_second_touch_during_a_session_is_ignored(window) -> None:
    win, scheduler = window
    _click_pad(win, 0.05)
    scheduler.advance(100)
    win._on_pad_pressed(0.95)
    assert win.pages.currentIndex() == 1
    scheduler.advance(win.controller.analysis_duration_ms)
    assert win.controller.phase is SessionPhase.RESULT_TRUE


def test_persisted_log_level_is_applied(app, settings, monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "sounddevice", SimpleNamespace(stop=lambda: None))
    level = logger.level
    settings.setValue("log_level", "debug")
    win = MainWindow(settings=settings, scheduler=ManualScheduler())
    try:
        assert logger.level == logging.DEBUG
    finally:
        win.close()
        logger.setLevel(level)
