"""Overlay window for the live transcript and reflection prompts."""

from __future__ import annotations

from models import PromptBatch

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

TRANSCRIPT_TAIL_CHARS = 280

_BASE_STYLE = "font-size: 16px; padding: 12px; background: rgba(0,0,0,190); border-radius: 12px;"


def format_duration(seconds: float) -> str:
    """Render seconds as ``m:ss`` or ``h:mm:ss``."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def transcript_tail(text: str, limit: int = TRANSCRIPT_TAIL_CHARS) -> str:
    """Keep the end of a long transcript, cut at a word boundary."""
    text = text.strip()
    if len(text) <= limit:
        return text
    tail = text[-limit:]
    space = tail.find(" ")
    if 0 <= space < len(tail) - 1:
        tail = tail[space + 1:]
    return f"… {tail}"


def render_prompts(batch: PromptBatch) -> str:
    lines = []
    for prompt in batch.prompts:
        if prompt.short_context:
            lines.append(f"• {prompt.prompt_text}  ({prompt.short_context})")
        else:
            lines.append(f"• {prompt.prompt_text}")
    return "\n".join(lines)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._status = QLabel("")
        self._transcript = QLabel("")
        self._transcript.setWordWrap(True)
        self._prompts = QLabel("")
        self._prompts.setWordWrap(True)
        self._status.setStyleSheet(f"color: #FF6B6B; {_BASE_STYLE}")
        self._transcript.setStyleSheet(f"color: white; {_BASE_STYLE}")
        self._prompts.setStyleSheet(f"color: #9AD0FF; {_BASE_STYLE}")

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)
        layout.addWidget(self._status)
        layout.addWidget(self._transcript)
        layout.addWidget(self._prompts)
        self.setLayout(layout)

        self._elapsed = "0:00"
        self._state = ""
        self._reading = False
        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40  # below menu bar
        self.move(x, y)

    def show_session(self) -> None:
        self._cancel_hide_timer()
        self._center_top()
        self.show()

    def set_state(self, state: str) -> None:
        self._state = state
        self._refresh_status()

    def set_elapsed(self, elapsed_ms: int) -> None:
        self._elapsed = format_duration(elapsed_ms / 1000.0)
        self._refresh_status()

    def set_reading(self, is_paused: bool) -> None:
        self._reading = is_paused
        self._refresh_status()

    def set_transcript(self, text: str) -> None:
        self._transcript.setText(transcript_tail(text) or "🎙️ Listening...")
        self.adjustSize()

    def set_prompts(self, batch: PromptBatch) -> None:
        rendered = render_prompts(batch)
        self._prompts.setText(rendered)
        self._prompts.setVisible(bool(rendered))
        self.adjustSize()

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        """Hide the overlay window after a short delay."""
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def show_error(self, text: str, hide_after_ms: int = 2500) -> None:
        """Show an error message and auto-hide after given ms."""
        self._status.setText(f"⚠️ {text}")
        self.show_session()
        self.hide_with_delay(hide_after_ms)

    def _refresh_status(self) -> None:
        parts = [f"● {self._elapsed}"]
        if self._state:
            parts.append(self._state.lower())
        if self._reading:
            parts.append("reading - prompts frozen")
        self._status.setText("   ".join(parts))

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
