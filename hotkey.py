"""Global hotkey adapter based on pynput."""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class GlobalHotkeyAdapter:
    """Fire a handler once per key press; auto-repeat is ignored until release."""

    def __init__(self, bindings: dict[str, Callable[[], None]]) -> None:
        self._bindings = dict(bindings)
        self._listener: Optional[object] = None
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def start(self) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def _on_press(self, key: object) -> None:
        name = str(key)
        handler = self._bindings.get(name)
        if handler is None:
            return
        with self._lock:
            if name in self._held:
                return
            self._held.add(name)
        handler()

    def _on_release(self, key: object) -> None:
        with self._lock:
            self._held.discard(str(key))
