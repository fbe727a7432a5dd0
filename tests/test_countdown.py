from __future__ import annotations

import threading
import time

import pytest

from speakbridge.live.countdown import CountdownGate


def test_countdown_ticks_then_fires() -> None:
    ticks: list[int] = []
    fired = threading.Event()
    gate = CountdownGate(on_tick=ticks.append, interval=0.01)

    gate.begin(3, fired.set)
    assert fired.wait(2.0)
    assert ticks == [3, 2, 1]
    assert not gate.counting
    assert gate.remaining == 0


def test_cancel_prevents_fire() -> None:
    ticks: list[int] = []
    fired: list[bool] = []
    gate = CountdownGate(on_tick=ticks.append, interval=0.05)

    gate.begin(3, lambda: fired.append(True))
    assert gate.counting
    assert gate.remaining == 3
    assert gate.cancel() is True
    time.sleep(0.2)
    assert fired == []
    assert ticks == [3]
    assert gate.cancel() is False


def test_zero_duration_fires_immediately() -> None:
    ticks: list[int] = []
    fired: list[bool] = []
    gate = CountdownGate(on_tick=ticks.append)

    gate.begin(0, lambda: fired.append(True))
    assert fired == [True]
    assert ticks == []
    assert not gate.counting


def test_begin_replaces_running_countdown() -> None:
    fired: list[str] = []
    done = threading.Event()
    gate = CountdownGate(interval=0.01)

    gate.begin(50, lambda: fired.append("first"))

    def _second() -> None:
        fired.append("second")
        done.set()

    gate.begin(1, _second)
    assert done.wait(2.0)
    time.sleep(0.05)
    assert fired == ["second"]


def test_invalid_interval_rejected() -> None:
    with pytest.raises(ValueError):
        CountdownGate(interval=0)


def test_cancel_mid_countdown_prevents_fire() -> None:
    ticks: list[int] = []
    fired: list[bool] = []
    reached = threading.Event()
    gate = CountdownGate(interval=0.01)

    def _on_tick(remaining: int) -> None:
        ticks.append(remaining)
        if remaining == 3:
            gate.cancel()
            reached.set()

    gate.on_tick = _on_tick
    gate.begin(5, lambda: fired.append(True))
    assert reached.wait(2.0)
    time.sleep(0.1)
    assert ticks == [5, 4, 3]
    assert fired == []
    assert not gate.counting
    assert gate.remaining == 0


def test_failing_tick_observer_resets_gate() -> None:
    fired: list[bool] = []

    def _broken(remaining: int) -> None:
        raise RuntimeError("observer failed")

    gate = CountdownGate(on_tick=_broken, interval=0.01)
    with pytest.raises(RuntimeError):
        gate.begin(3, lambda: fired.append(True))
    assert not gate.counting
    assert gate.cancel() is False

    done = threading.Event()
    gate.on_tick = None
    gate.begin(1, done.set)
    assert done.wait(2.0)
    assert fired == []
