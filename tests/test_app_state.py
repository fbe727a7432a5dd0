from __future__ import annotations

from speakbridge.app.state import SessionState, SessionStateTracker


def test_state_tracker_happy_path() -> None:
    tracker = SessionStateTracker()
    assert tracker.state == SessionState.IDLE
    assert not tracker.listening

    tracker.set_starting()
    assert tracker.state == SessionState.STARTING
    assert tracker.listening

    tracker.set_active()
    assert tracker.state == SessionState.ACTIVE
    assert tracker.listening

    tracker.set_stopping()
    assert tracker.state == SessionState.STOPPING
    assert not tracker.listening

    tracker.set_idle()
    assert tracker.state == SessionState.IDLE


def test_active_only_from_starting() -> None:
    tracker = SessionStateTracker()
    tracker.set_active()
    assert tracker.state == SessionState.IDLE
    tracker.set_stopping()
    assert tracker.state == SessionState.IDLE


def test_error_clears_on_restart() -> None:
    tracker = SessionStateTracker()
    tracker.record_error("boom")
    assert tracker.last_error == "boom"

    tracker.set_starting()
    assert tracker.last_error is None
