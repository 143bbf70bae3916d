"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading

from archive import WavArchiveSink
from config import JsonConfigStore
from errors import ERROR_MESSAGES, LiveSessionError
from hotkey import GlobalHotkeyAdapter
from models import PromptBatch, SessionState
from overlay import OverlayWindow
from prompt_generator import DashscopePromptGenerator
from recognizer import DashscopeTranscriber
from recorder import SoundDeviceRecorder
from session_controller import SessionController

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_PAUSED = "#FFC107"    # amber
ICON_ERROR = "#FF8800"     # orange


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    elapsed_signal = Signal(int)
    transcript_signal = Signal(str)
    activity_signal = Signal(bool)
    prompts_signal = Signal(object)
    error_signal = Signal(str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.elapsed_signal.connect(self.overlay.set_elapsed)
        self.ui.transcript_signal.connect(self.overlay.set_transcript)
        self.ui.activity_signal.connect(self.overlay.set_reading)
        self.ui.prompts_signal.connect(self.overlay.set_prompts)
        self.ui.error_signal.connect(self.overlay.show_error)

        self.controller = self._build_controller(self.config_store.get_api_key())
        self.hotkey = GlobalHotkeyAdapter(
            {
                self.config_store.get_hotkey(): self._toggle_recording,
                self.config_store.get_pause_hotkey(): self._toggle_pause,
            }
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Live Reflect — Ready")
        self._setup_menu()
        self.tray.show()

    def _build_controller(self, api_key: str) -> SessionController:
        settings = self.config_store.get_live_settings()
        controller = SessionController(
            capture=SoundDeviceRecorder(),
            transcriber=DashscopeTranscriber(api_key=api_key, request_timeout_s=settings.transcribe_timeout_s),
            prompt_generator=DashscopePromptGenerator(api_key=api_key, request_timeout_s=settings.prompt_timeout_s),
            recording_sink=WavArchiveSink(self.config_store.directory / "recordings"),
            settings=settings,
            on_state_change=lambda f, t: self.ui.state_signal.emit(f.value, t.value),
            on_elapsed=self.ui.elapsed_signal.emit,
            on_transcript=self.ui.transcript_signal.emit,
            on_activity=self.ui.activity_signal.emit,
            on_prompts=self.ui.prompts_signal.emit,
            on_error=self._on_error,
        )
        controller.set_live_transcription(self.config_store.get_live_transcription())
        return controller

    def _setup_menu(self) -> None:
        menu = QMenu()

        self.record_action = QAction("Start Recording", menu)
        self.record_action.triggered.connect(self._toggle_recording)
        menu.addAction(self.record_action)

        self.pause_action = QAction("Pause", menu)
        self.pause_action.setEnabled(False)
        self.pause_action.triggered.connect(self._toggle_pause)
        menu.addAction(self.pause_action)

        self.cancel_action = QAction("Discard Recording", menu)
        self.cancel_action.setEnabled(False)
        self.cancel_action.triggered.connect(lambda: self.controller.cancel_session("discarded by user"))
        menu.addAction(self.cancel_action)

        menu.addSeparator()
        self.live_action = QAction("Live Transcription", menu)
        self.live_action.setCheckable(True)
        self.live_action.setChecked(self.controller.live_transcription_enabled)
        self.live_action.toggled.connect(self._set_live_transcription)
        menu.addAction(self.live_action)

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        if self.controller.state != SessionState.IDLE:
            QMessageBox.warning(None, "Busy", "Stop the current recording first.")
            return
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.controller = self._build_controller(value)
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_live_transcription(self, enabled: bool) -> None:
        self.config_store.set_live_transcription(enabled)
        self.controller.set_live_transcription(enabled)

    # ------------------------------------------------------------------
    # Controller callbacks (worker threads → signals for UI thread)
    # ------------------------------------------------------------------

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(ERROR_MESSAGES.get(code, message))

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.overlay.set_state(to_state)
        recording = to_state in (SessionState.RECORDING.value, SessionState.PAUSED.value)
        self.pause_action.setEnabled(recording)
        self.cancel_action.setEnabled(recording)
        if to_state == SessionState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Live Reflect — Recording...")
            self.record_action.setText("Stop Recording")
            self.pause_action.setText("Pause")
            self.overlay.show_session()
        elif to_state == SessionState.PAUSED.value:
            self.tray.setIcon(_create_icon(ICON_PAUSED))
            self.tray.setToolTip("Live Reflect — Paused")
            self.pause_action.setText("Resume")
        elif to_state == SessionState.STOPPING.value:
            self.tray.setToolTip("Live Reflect — Saving...")
        elif to_state == SessionState.IDLE.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Live Reflect — Ready")
            self.record_action.setText("Start Recording")
            self.overlay.hide_with_delay(400)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _toggle_recording(self) -> None:
        if self.controller.state == SessionState.IDLE:
            try:
                self.controller.start_session()
            except LiveSessionError as exc:
                logger.error("Recording did not start: %s", exc)
            return
        # stop_session finalizes the recording and writes it to disk, keep it off the Qt thread
        threading.Thread(target=self.controller.stop_session, daemon=True).start()

    def _toggle_pause(self) -> None:
        if self.controller.state == SessionState.RECORDING:
            self.controller.pause_session()
        elif self.controller.state == SessionState.PAUSED:
            self.controller.resume_session()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start()
        except Exception as exc:
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.cancel_session("app quit")
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
