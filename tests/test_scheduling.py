"""Tests for Countdown and Ticker using real threads."""

from __future__ import annotations

import threading
import time

from scheduling import Countdown, Ticker, now_ms


def _wait_until(predicate, timeout: float = 2.0) -> bool:  # noqa: ANN001
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# ---------------------------------------------------------------
# Countdown
# ---------------------------------------------------------------

def test_countdown_fires_once() -> None:
    fired: list[int] = []
    countdown = Countdown("test")

    countdown.arm(0.02, lambda: fired.append(1))

    assert _wait_until(lambda: fired == [1])
    time.sleep(0.05)
    assert fired == [1]
    assert countdown.armed is False


def test_cancelled_countdown_does_not_fire() -> None:
    fired: list[int] = []
    countdown = Countdown("test")

    countdown.arm(0.05, lambda: fired.append(1))
    countdown.cancel()
    time.sleep(0.15)

    assert fired == []


def test_rearm_replaces_pending_callback() -> None:
    fired: list[str] = []
    countdown = Countdown("test")

    countdown.arm(0.05, lambda: fired.append("first"))
    countdown.arm(0.05, lambda: fired.append("second"))

    assert _wait_until(lambda: fired == ["second"])
    time.sleep(0.1)
    assert fired == ["second"]


def test_countdown_cancelled_while_waiting_for_lock_does_not_fire() -> None:
    lock = threading.RLock()
    fired: list[int] = []
    countdown = Countdown("test", lock=lock)

    with lock:
        countdown.arm(0.01, lambda: fired.append(1))
        time.sleep(0.05)  # timer thread is now blocked on the lock
        countdown.cancel()
    time.sleep(0.05)

    assert fired == []


def test_countdown_callback_error_is_contained() -> None:
    fired: list[int] = []
    countdown = Countdown("test")

    def boom() -> None:
        raise RuntimeError("boom")

    countdown.arm(0.01, boom)
    time.sleep(0.05)
    countdown.arm(0.01, lambda: fired.append(1))

    assert _wait_until(lambda: fired == [1])


# ---------------------------------------------------------------
# Ticker
# ---------------------------------------------------------------

def test_ticker_repeats_until_stopped() -> None:
    ticks: list[int] = []
    ticker = Ticker("test", 0.01, lambda: ticks.append(1))

    ticker.start()
    assert ticker.running is True
    assert _wait_until(lambda: len(ticks) >= 3)
    ticker.stop()
    assert ticker.running is False
    time.sleep(0.05)
    count = len(ticks)
    time.sleep(0.05)

    assert len(ticks) == count


def test_ticker_survives_callback_errors() -> None:
    calls: list[int] = []

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    ticker = Ticker("test", 0.01, flaky)
    ticker.start()
    try:
        assert _wait_until(lambda: len(calls) >= 2)
    finally:
        ticker.stop()


def test_now_ms_is_monotonic() -> None:
    first = now_ms()
    second = now_ms()
    assert second >= first
