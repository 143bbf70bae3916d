"""Timers for the live path: a monotonic clock, a debounce countdown and a ticker."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, ContextManager, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


def now_ms() -> int:
    return int(time.monotonic() * 1000)


def spawn_daemon(target: Callback, name: str = "live-worker") -> None:
    threading.Thread(target=target, name=name, daemon=True).start()


class Countdown:
    """Arm a labeled one-shot timer; re-arming cancels the previous one.

    The callback fires at most once per ``arm``. When ``lock`` is given the
    callback runs while holding it, and a timer cancelled while waiting for
    the lock does not fire.
    """

    def __init__(self, label: str, lock: Optional[ContextManager] = None) -> None:
        self.label = label
        self._lock = lock
        self._guard = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def arm(self, delay_s: float, callback: Callback) -> None:
        with self._guard:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            timer = threading.Timer(delay_s, self._fire, args=(generation, callback))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._guard:
            self._cancel_timer()
            self._generation += 1

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int, callback: Callback) -> None:
        if self._lock is not None:
            with self._lock:
                self._fire_once(generation, callback)
        else:
            self._fire_once(generation, callback)

    def _fire_once(self, generation: int, callback: Callback) -> None:
        with self._guard:
            if generation != self._generation:
                return
            self._timer = None
            self._generation += 1
        try:
            callback()
        except Exception:
            logger.exception("Countdown %s callback failed", self.label)


class Ticker:
    """Call ``callback`` every ``interval_s`` on a dedicated thread until stopped.

    A slow callback delays the next tick instead of overlapping with it.
    """

    def __init__(self, label: str, interval_s: float, callback: Callback) -> None:
        self.label = label
        self.interval_s = interval_s
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=f"ticker-{self.label}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("Ticker %s callback failed", self.label)
