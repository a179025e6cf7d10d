"""
polygraph: PySide 6 kiosk
--------------------------------------

Full-screen presentation layer for the session engine.  The window owns
one :class:`~polygraph.session.SessionController` for the lifetime of
the process and only ever calls its three user operations: ``start``
(with the horizontal position of the touch on the fingerprint pad),
``reset`` and ``calibrate``.  Everything it shows comes from the
controller through :class:`SessionBridge`, which re-emits listener
callbacks as Qt signals.

Operator settings (noise gate, timings, heuristic ratio, input device
and so on) are persisted with ``QSettings`` and edited from a dialog
opened with ``Ctrl+,``.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Optional

from q_materialise import inject_style

# ─── Qt ────────────────────────────────────────────────────────────────────────
from PySide6 import QtCore, QtGui, QtWidgets

from . import constants
from .capture import MicrophoneSource
from .logging_utils import DEFAULT_LOG_LEVEL, LOG_LEVELS, log_event, set_log_level
from .scheduler import Scheduler, TimerHandle
from .session import MiddleBand, SessionController, SessionListener, SessionPhase
from .spectrum import REDUCTIONS
from .tones import ToneFeedback

GREEN = "#00ff41"
RED = "#ff003c"
BLACK = "#0a0a0a"

STYLESHEET = f"""
QWidget {{ background: {BLACK}; color: {GREEN}; font-family: monospace; }}
QLabel#header, QLabel#footer {{ letter-spacing: 4px; font-size: 12px; }}
QLabel#footer {{ color: rgba(0, 255, 65, 110); }}
QLabel#status {{ font-size: 26px; font-weight: bold; letter-spacing: 4px; }}
QLabel#verdictTrue {{ font-size: 96px; font-weight: 900; color: {GREEN}; }}
QLabel#verdictLie {{ font-size: 96px; font-weight: 900; color: {RED}; }}
QLabel#subtitleLie, QPushButton#resetLie {{ color: {RED}; border-color: {RED}; }}
QPushButton {{
    border: 1px solid {GREEN}; padding: 14px 36px; font-weight: bold;
    letter-spacing: 4px; background: transparent;
}}
QPushButton:hover {{ background: {GREEN}; color: {BLACK}; }}
QPushButton#resetLie:hover {{ background: {RED}; color: {BLACK}; }}
QPushButton#pad {{
    border: 2px solid {GREEN}; border-radius: 120px; font-size: 20px;
    min-width: 240px; max-width: 240px; min-height: 240px; max-height: 240px;
}}
QProgressBar {{ border: 1px solid {GREEN}; background: {BLACK}; height: 6px; }}
QProgressBar::chunk {{ background: {GREEN}; }}
"""


# ─── Scheduling ─────────────────────────────────────────────────────────────


class _QtTimerHandle(TimerHandle):
    def __init__(self, timer: QtCore.QTimer) -> None:
        self.timer = timer
        self._done = False

    @property
    def active(self) -> bool:
        return not self._done

    def cancel(self) -> None:
        if self._done:
            return
        self._done = True
        self.timer.stop()
        self.timer.deleteLater()


class QtScheduler(Scheduler):
    """:class:`~polygraph.scheduler.Scheduler` backed by ``QTimer``."""

    def __init__(self, parent: QtCore.QObject) -> None:
        self.parent = parent
        self._clock = QtCore.QElapsedTimer()
        self._clock.start()

    def now(self) -> float:
        return float(self._clock.elapsed())

    def _timer(
        self, ms: float, callback: Callable[[], None], single_shot: bool
    ) -> TimerHandle:
        timer = QtCore.QTimer(self.parent)
        timer.setTimerType(QtCore.Qt.TimerType.PreciseTimer)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(int(round(ms)), 0))
        handle = _QtTimerHandle(timer)

        def fire() -> None:
            if not handle.active:
                return
            if single_shot:
                handle.cancel()
            callback()

        timer.timeout.connect(fire)
        timer.start()
        return handle

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        return self._timer(delay_ms, callback, True)

    def call_every(
        self, interval_ms: float, callback: Callable[[], None]
    ) -> TimerHandle:
        return self._timer(interval_ms, callback, False)


def display_refresh_interval() -> float:
    """Milliseconds per frame of the primary screen."""
    screen = QtGui.QGuiApplication.primaryScreen()
    rate = screen.refreshRate() if screen is not None else 0.0
    if rate and rate > 0:
        return 1000.0 / rate
    return float(constants.REFRESH_INTERVAL_MS)


# ─── Settings ───────────────────────────────────────────────────────────────

# key -> (default, type)
SETTING_DEFAULTS: dict[str, tuple[Any, type]] = {
    "silence_threshold": (constants.SILENCE_THRESHOLD, float),
    "analysis_duration_ms": (constants.ANALYSIS_DURATION_MS, int),
    "status_interval_ms": (constants.STATUS_INTERVAL_MS, int),
    "calibration_duration_ms": (constants.CALIBRATION_DURATION_MS, int),
    "fallback_volume": (constants.FALLBACK_VOLUME, float),
    "lie_ratio": (constants.LIE_RATIO, float),
    "reduction": (constants.REDUCTION, str),
    "middle_band": (MiddleBand.DEFER.value, str),
    "input_device": (-1, int),
    "sounds_enabled": (True, bool),
    "log_level": (DEFAULT_LOG_LEVEL, str),
}


def read_settings(settings: QtCore.QSettings) -> dict[str, Any]:
    """Return every persisted setting, falling back to the defaults."""
    values: dict[str, Any] = {}
    for key, (default, kind) in SETTING_DEFAULTS.items():
        value = settings.value(key, default)
        try:
            if kind is bool and isinstance(value, str):
                value = value.lower() in ("1", "true", "yes")
            values[key] = kind(value)
        except (TypeError, ValueError):
            values[key] = default
    if values["reduction"] not in REDUCTIONS:
        values["reduction"] = constants.REDUCTION
    if values["middle_band"] not in {m.value for m in MiddleBand}:
        values["middle_band"] = MiddleBand.DEFER.value
    values["log_level"] = values["log_level"].upper()
    if values["log_level"] not in LOG_LEVELS:
        values["log_level"] = DEFAULT_LOG_LEVEL
    return values


class SettingsDialog(QtWidgets.QDialog):
    """Edit the persisted tuning of the kiosk."""

    def __init__(self, parent: MainWindow) -> None:
        super().__init__(parent)
        self.parent_window = parent
        self.setWindowTitle("Settings")
        values = read_settings(parent.settings)

        layout = QtWidgets.QVBoxLayout(self)
        form = QtWidgets.QFormLayout()
        layout.addLayout(form)

        def spin(value: float, low: float, high: float, decimals: int = 0):
            box = QtWidgets.QDoubleSpinBox() if decimals else QtWidgets.QSpinBox()
            if decimals:
                box.setDecimals(decimals)
            box.setRange(low, high)
            box.setValue(value)
            return box

        self.threshold_spin = spin(values["silence_threshold"], 0, 255, 1)
        form.addRow("Silence threshold (0-255)", self.threshold_spin)
        self.analysis_spin = spin(values["analysis_duration_ms"], 500, 30000)
        form.addRow("Analysis duration (ms)", self.analysis_spin)
        self.status_spin = spin(values["status_interval_ms"], 100, 5000)
        form.addRow("Status interval (ms)", self.status_spin)
        self.calibration_spin = spin(values["calibration_duration_ms"], 500, 30000)
        form.addRow("Calibration duration (ms)", self.calibration_spin)
        self.fallback_spin = spin(values["fallback_volume"], 0, 255, 1)
        form.addRow("Fallback volume", self.fallback_spin)
        self.ratio_spin = spin(values["lie_ratio"], 1.0, 5.0, 2)
        form.addRow("Lie ratio", self.ratio_spin)

        self.reduction_combo = QtWidgets.QComboBox()
        self.reduction_combo.addItems(list(REDUCTIONS))
        self.reduction_combo.setCurrentText(values["reduction"])
        form.addRow("Spectrum reduction", self.reduction_combo)

        self.band_combo = QtWidgets.QComboBox()
        self.band_combo.addItems([m.value for m in MiddleBand])
        self.band_combo.setCurrentText(values["middle_band"])
        form.addRow("Middle band", self.band_combo)

        self.device_combo = QtWidgets.QComboBox()
        self._populate_devices(values["input_device"])
        form.addRow("Input device", self.device_combo)

        self.sounds_check = QtWidgets.QCheckBox("Play feedback sounds")
        self.sounds_check.setChecked(values["sounds_enabled"])
        form.addRow(self.sounds_check)

        self.log_combo = QtWidgets.QComboBox()
        self.log_combo.addItems(list(LOG_LEVELS))
        self.log_combo.setCurrentText(values["log_level"])
        form.addRow("Log level", self.log_combo)

        self.buttons = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.StandardButton.Ok
            | QtWidgets.QDialogButtonBox.StandardButton.Cancel,
            QtCore.Qt.Orientation.Horizontal,
            self,
        )
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        layout.addWidget(self.buttons)
        self.setMinimumWidth(420)

    def _populate_devices(self, current: int) -> None:
        self.device_combo.addItem("System default", -1)
        try:
            import sounddevice as sd

            for idx, dev in enumerate(sd.query_devices()):
                if dev["max_input_channels"] > 0:
                    self.device_combo.addItem(f"{idx}: {dev['name']}", idx)
        except Exception as e:
            log_event("WARNING", "GUI", "Could not enumerate input devices", error=e)
        pos = self.device_combo.findData(current)
        self.device_combo.setCurrentIndex(max(pos, 0))

    def accept(self) -> None:
        settings = self.parent_window.settings
        settings.setValue("silence_threshold", self.threshold_spin.value())
        settings.setValue("analysis_duration_ms", self.analysis_spin.value())
        settings.setValue("status_interval_ms", self.status_spin.value())
        settings.setValue("calibration_duration_ms", self.calibration_spin.value())
        settings.setValue("fallback_volume", self.fallback_spin.value())
        settings.setValue("lie_ratio", self.ratio_spin.value())
        settings.setValue("reduction", self.reduction_combo.currentText())
        settings.setValue("middle_band", self.band_combo.currentText())
        settings.setValue("input_device", self.device_combo.currentData())
        settings.setValue("sounds_enabled", self.sounds_check.isChecked())
        settings.setValue("log_level", self.log_combo.currentText())
        super().accept()


# ─── Widgets ────────────────────────────────────────────────────────────────


class SessionBridge(QtCore.QObject, SessionListener):
    """Forward controller callbacks as Qt signals."""

    phaseChanged = QtCore.Signal(str)
    statusChanged = QtCore.Signal(str)
    noticeChanged = QtCore.Signal(str)
    sampleChanged = QtCore.Signal(float)

    def on_phase_changed(self, phase: SessionPhase) -> None:
        self.phaseChanged.emit(phase.value)

    def on_status_changed(self, text: str) -> None:
        self.statusChanged.emit(text)

    def on_notice(self, text: str) -> None:
        self.noticeChanged.emit(text)

    def on_sample(self, level: float) -> None:
        self.sampleChanged.emit(level)


class FingerprintPad(QtWidgets.QPushButton):
    """Round start control reporting where across its width it was pressed."""

    pressedAt = QtCore.Signal(float)

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:
        width = max(self.width(), 1)
        ratio = min(max(event.position().x() / width, 0.0), 1.0)
        self.pressedAt.emit(ratio)
        super().mousePressEvent(event)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(
        self,
        settings: Optional[QtCore.QSettings] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("POLYGRAPH SYSTEM v9.0")
        self.settings = (
            settings if settings is not None else QtCore.QSettings("polygraph", "polygraph")
        )
        self.scheduler = scheduler if scheduler is not None else QtScheduler(self)
        self.bridge = SessionBridge(self)
        self.tones: Optional[ToneFeedback] = None
        self.controller: Optional[SessionController] = None

        self._build_ui()
        self._create_shortcuts()
        self.bridge.phaseChanged.connect(self._on_phase_changed)
        self.bridge.statusChanged.connect(self.status_label.setText)
        self.bridge.noticeChanged.connect(self.notice_label.setText)
        self.bridge.sampleChanged.connect(self._on_sample)
        self._build_controller()

    # ------------------------------------------------------------------
    def _build_controller(self) -> None:
        values = read_settings(self.settings)
        set_log_level(values["log_level"])
        device = values["input_device"]
        device_index = None if device < 0 else device
        self.tones = ToneFeedback(enabled=values["sounds_enabled"])
        previous = self.controller
        self.controller = SessionController(
            self.scheduler,
            lambda: MicrophoneSource(device_index),
            tones=self.tones,
            middle_band=MiddleBand(values["middle_band"]),
            reduction=values["reduction"],
            refresh_interval_ms=display_refresh_interval(),
            silence_threshold=values["silence_threshold"],
            analysis_duration_ms=values["analysis_duration_ms"],
            status_interval_ms=values["status_interval_ms"],
            calibration_duration_ms=values["calibration_duration_ms"],
            fallback_volume=values["fallback_volume"],
            lie_ratio=values["lie_ratio"],
        )
        if previous is not None:
            # The baseline belongs to the process, not to one configuration.
            self.controller.baseline = previous.baseline
            previous.remove_listener(self.bridge)
            previous.shutdown()
        self.controller.add_listener(self.bridge)
        log_event("INFO", "GUI", "Session controller ready", **values)

    def _make_label(self, text: str, name: str = "") -> QtWidgets.QLabel:
        label = QtWidgets.QLabel(text)
        label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        if name:
            label.setObjectName(name)
        return label

    def _build_ui(self) -> None:
        central = QtWidgets.QWidget()
        outer = QtWidgets.QVBoxLayout(central)
        outer.addWidget(self._make_label("POLYGRAPH SYSTEM v9.0  ·  ONLINE", "header"))

        self.pages = QtWidgets.QStackedWidget()
        outer.addWidget(self.pages, 1)
        outer.addWidget(
            self._make_label("UNAUTHORIZED USE IS A FEDERAL OFFENSE.", "footer")
        )

        # Idle
        idle = QtWidgets.QWidget()
        idle_layout = QtWidgets.QVBoxLayout(idle)
        idle_layout.addStretch()
        self.pad = FingerprintPad("TOUCH\nTO START")
        self.pad.setObjectName("pad")
        self.pad.pressedAt.connect(self._on_pad_pressed)
        idle_layout.addWidget(self.pad, 0, QtCore.Qt.AlignmentFlag.AlignCenter)
        self.notice_label = self._make_label("")
        idle_layout.addWidget(self.notice_label)
        calibrate_btn = QtWidgets.QPushButton("CALIBRATE VOICE")
        calibrate_btn.clicked.connect(self._on_calibrate)
        idle_layout.addWidget(calibrate_btn, 0, QtCore.Qt.AlignmentFlag.AlignCenter)
        idle_layout.addStretch()
        self.pages.addWidget(idle)

        # Analyzing and calibrating share one page.
        scan = QtWidgets.QWidget()
        scan_layout = QtWidgets.QVBoxLayout(scan)
        scan_layout.addStretch()
        self.level_bar = QtWidgets.QProgressBar()
        self.level_bar.setRange(0, 255)
        self.level_bar.setTextVisible(False)
        scan_layout.addWidget(self.level_bar)
        self.status_label = self._make_label(constants.INITIAL_TEXT, "status")
        self.status_label.setWordWrap(True)
        scan_layout.addWidget(self.status_label)
        scan_layout.addWidget(self._make_label("PROCESSING DATA STREAMS..."))
        self.progress = QtWidgets.QProgressBar()
        self.progress.setRange(0, 1000)
        self.progress.setTextVisible(False)
        scan_layout.addWidget(self.progress)
        scan_layout.addStretch()
        self.pages.addWidget(scan)
        self.progress_anim = QtCore.QPropertyAnimation(self.progress, b"value", self)
        self.progress_anim.setStartValue(0)
        self.progress_anim.setEndValue(1000)

        self.true_page = self._build_result_page(
            "TRUE", "VERIFIED", "verdictTrue", "", "resetTrue"
        )
        self.lie_page = self._build_result_page(
            "LIE", "DECEPTION DETECTED", "verdictLie", "subtitleLie", "resetLie"
        )
        self.pages.addWidget(self.true_page)
        self.pages.addWidget(self.lie_page)

        self.setCentralWidget(central)
        self.setStyleSheet(STYLESHEET)

    def _build_result_page(
        self, verdict: str, subtitle: str, name: str, subtitle_name: str, reset_name: str
    ) -> QtWidgets.QWidget:
        page = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(page)
        layout.addStretch()
        layout.addWidget(self._make_label(verdict, name))
        layout.addWidget(self._make_label(subtitle, subtitle_name))
        reset_btn = QtWidgets.QPushButton("RESET SYSTEM")
        reset_btn.setObjectName(reset_name)
        reset_btn.clicked.connect(self._on_reset)
        layout.addWidget(reset_btn, 0, QtCore.Qt.AlignmentFlag.AlignCenter)
        layout.addStretch()
        return page

    def _create_shortcuts(self) -> None:
        settings_action = QtGui.QAction("Settings", self)
        settings_action.setShortcut(QtGui.QKeySequence("Ctrl+,"))
        settings_action.triggered.connect(self._open_settings_dialog)
        self.addAction(settings_action)

        fullscreen_action = QtGui.QAction("Toggle full screen", self)
        fullscreen_action.setShortcut(QtGui.QKeySequence("F11"))
        fullscreen_action.triggered.connect(self._toggle_fullscreen)
        self.addAction(fullscreen_action)

        quit_action = QtGui.QAction("Quit", self)
        quit_action.setShortcut(QtGui.QKeySequence("Ctrl+Q"))
        quit_action.triggered.connect(self.close)
        self.addAction(quit_action)

    # ------------------------------------------------------------------
    def _on_pad_pressed(self, ratio: float) -> None:
        if self.controller is not None:
            self.controller.start(ratio)

    def _on_calibrate(self) -> None:
        if self.controller is not None:
            self.controller.calibrate()

    def _on_reset(self) -> None:
        if self.controller is not None:
            self.controller.reset()

    def _on_sample(self, level: float) -> None:
        self.level_bar.setValue(int(level))

    def _on_phase_changed(self, phase_value: str) -> None:
        phase = SessionPhase(phase_value)
        self.progress_anim.stop()
        if phase is SessionPhase.IDLE:
            self.pages.setCurrentIndex(0)
        elif phase in (SessionPhase.ANALYZING, SessionPhase.CALIBRATING):
            if self.controller is None:
                return
            duration = (
                self.controller.analysis_duration_ms
                if phase is SessionPhase.ANALYZING
                else self.controller.calibration_duration_ms
            )
            self.level_bar.setValue(0)
            self.progress.setValue(0)
            self.progress_anim.setDuration(int(duration))
            self.progress_anim.start()
            self.pages.setCurrentIndex(1)
        elif phase is SessionPhase.RESULT_TRUE:
            self.pages.setCurrentWidget(self.true_page)
        else:
            self.pages.setCurrentWidget(self.lie_page)

    def _open_settings_dialog(self) -> None:
        if self.controller is not None and self.controller.phase is not SessionPhase.IDLE:
            return
        dlg = SettingsDialog(self)
        if dlg.exec():
            self._build_controller()

    def _toggle_fullscreen(self) -> None:
        if self.isFullScreen():
            self.showNormal()
        else:
            self.showFullScreen()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        if self.controller is not None:
            self.controller.shutdown()
        if self.tones is not None:
            self.tones.stop()
        super().closeEvent(event)


def run_gui() -> None:
    app = QtWidgets.QApplication(sys.argv)

    inject_style(app, style="crimson_depth")

    win = MainWindow()
    win.showFullScreen()
    sys.exit(app.exec())


if __name__ == "__main__":
    run_gui()
