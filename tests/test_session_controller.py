from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import pytest

from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.app.state import SessionState
from speakbridge.audio.resource import AudioResource
from speakbridge.contracts import (
    Credentials,
    RecognitionEvent,
    SessionConfig,
    SynthesisOutcome,
    Voice,
)
from speakbridge.engine.base import EventSink, RecognitionHandle, SpeechEngine, SynthesisHandle
from speakbridge.errors import ConfigError, RecognitionError
from speakbridge.live.session import SessionController


# --- fakes ---

class FakeRecognition(RecognitionHandle):
    def __init__(self) -> None:
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


class FakeSynthesizer(SynthesisHandle):
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.close_calls = 0

    def synthesize(self, text: str) -> SynthesisOutcome:
        self.calls.append(text)
        return SynthesisOutcome(audio=f"wav:{text}".encode())

    def close(self) -> None:
        self.close_calls += 1


class FakeEngine(SpeechEngine):
    def __init__(self, *, fail_recognition: bool = False) -> None:
        self.fail_recognition = fail_recognition
        self.recognitions: list[FakeRecognition] = []
        self.synthesizers: list[FakeSynthesizer] = []
        self.opened: list[dict] = []
        self.sinks: list[EventSink] = []

    @property
    def name(self) -> str:
        return "fake"

    def open_recognition(self, credentials, *, source_locale, target_language, input_device, on_event):
        if self.fail_recognition:
            raise RecognitionError("Unable to start translation. Check mic permissions.")
        self.opened.append(
            {"source_locale": source_locale, "target_language": target_language, "input_device": input_device}
        )
        self.sinks.append(on_event)
        rec = FakeRecognition()
        self.recognitions.append(rec)
        return rec

    def open_synthesizer(self, credentials, voice):
        synth = FakeSynthesizer()
        self.synthesizers.append(synth)
        return synth

    def emit(self, event: RecognitionEvent, index: int = -1) -> None:
        self.sinks[index](event)


VOICES = {
    "en-GB": [Voice("en-GB-SoniaNeural", "Sonia", "Female")],
    "en-US": [Voice("en-US-JennyNeural", "Jenny", "Female")],
    "fr-FR": [Voice("fr-FR-DeniseNeural", "Denise", "Female")],
}
CONFIG = SessionConfig(source_language="en", target_language="fr", voice="fr-FR-DeniseNeural")


def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Recorder:
    def __init__(self) -> None:
        self.transcripts: list[str] = []
        self.translations: list[str] = []
        self.errors: list[str] = []
        self.states: list[SessionState] = []
        self.audio: list[AudioResource] = []


def _controller(
    engine: FakeEngine,
    *,
    creds: Optional[Credentials] = Credentials(api_key="key", region="westus"),
    log: DiagnosticLog | None = None,
) -> tuple[SessionController, Recorder]:
    rec = Recorder()
    controller = SessionController(
        engine=engine,
        credentials=lambda: creds,
        voices=VOICES,
        log=log,
        on_transcript=rec.transcripts.append,
        on_translation=rec.translations.append,
        on_audio=rec.audio.append,
        on_error=rec.errors.append,
        on_state=rec.states.append,
    )
    return controller, rec


def test_start_without_credentials_raises_config_error() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine, creds=None)
    with pytest.raises(ConfigError, match="Missing speech key or region"):
        controller.start(CONFIG)
    assert controller.state == SessionState.IDLE
    assert rec.states == []
    assert engine.opened == []


def test_start_with_blank_region_raises_config_error() -> None:
    controller, _ = _controller(FakeEngine(), creds=Credentials(api_key="key", region=""))
    with pytest.raises(ConfigError):
        controller.start(CONFIG)


def test_start_without_voice_raises_config_error() -> None:
    engine = FakeEngine()
    controller, _ = _controller(engine)
    with pytest.raises(ConfigError, match="select a voice"):
        controller.start(SessionConfig(source_language="en", target_language="fr", voice=""))
    assert controller.state == SessionState.IDLE
    assert engine.synthesizers == []


def test_start_activates_and_rejects_second_start() -> None:
    engine = FakeEngine()
    log = DiagnosticLog()
    controller, rec = _controller(engine, log=log)
    try:
        assert controller.start(CONFIG) is True
        assert controller.state == SessionState.ACTIVE
        assert controller.listening
        assert controller.config == CONFIG
        assert engine.opened == [{"source_locale": "en-US", "target_language": "fr", "input_device": None}]
        assert rec.states == [SessionState.STARTING, SessionState.ACTIVE]
        assert log.entries()[0].message == "Translation started: en-US -> fr"

        assert controller.start(CONFIG) is False
        assert len(engine.opened) == 1
        assert len(engine.synthesizers) == 1
    finally:
        controller.stop()


def test_stop_is_idempotent_and_releases_handles() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    controller.stop("user")
    controller.stop("user")

    assert controller.state == SessionState.IDLE
    assert controller.config is None
    assert engine.recognitions[0].close_calls == 1
    assert engine.synthesizers[0].close_calls == 1
    assert rec.states == [
        SessionState.STARTING,
        SessionState.ACTIVE,
        SessionState.STOPPING,
        SessionState.IDLE,
    ]


def test_stop_when_idle_is_noop() -> None:
    controller, rec = _controller(FakeEngine())
    controller.stop()
    assert controller.state == SessionState.IDLE
    assert rec.states == []


def test_interim_text_goes_to_transcript() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    try:
        engine.emit(RecognitionEvent.interim("hello wor"))
        assert _wait_for(lambda: "hello wor" in rec.transcripts)
        assert engine.synthesizers[0].calls == []
    finally:
        controller.stop()


def test_final_translation_is_synthesized() -> None:
    engine = FakeEngine()
    log = DiagnosticLog()
    controller, rec = _controller(engine, log=log)
    controller.start(CONFIG)
    try:
        engine.emit(RecognitionEvent.final("hello", {"fr": "bonjour"}))
        assert _wait_for(lambda: len(rec.audio) == 1)
        assert [t for t in rec.translations if t] == ["bonjour"]
        assert engine.synthesizers[0].calls == ["bonjour"]
        assert rec.audio[0].data == b"wav:bonjour"
        assert controller.current_audio is rec.audio[0]
        categories = [e.category for e in log.entries()]
        assert LogCategory.SPEECH in categories
        assert LogCategory.TRANSLATION in categories
    finally:
        controller.stop()
    assert rec.audio[0].released


def test_final_without_target_translation_is_ignored() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    try:
        engine.emit(RecognitionEvent.final("hello", {"de": "hallo"}))
        engine.emit(RecognitionEvent.final("hello", {"fr": "bonjour"}, translated=False))
        engine.emit(RecognitionEvent.interim("marker"))
        assert _wait_for(lambda: "marker" in rec.transcripts)
        assert [t for t in rec.translations if t] == []
        assert engine.synthesizers[0].calls == []
    finally:
        controller.stop()


def test_canceled_event_reports_and_stops() -> None:
    engine = FakeEngine()
    log = DiagnosticLog()
    controller, rec = _controller(engine, log=log)
    controller.start(CONFIG)

    engine.emit(RecognitionEvent.canceled("Authentication failed (401)"))
    assert _wait_for(lambda: controller.state == SessionState.IDLE)
    assert "Authentication failed (401)" in [e for e in rec.errors if e]
    assert controller.last_error == "Authentication failed (401)"
    assert engine.recognitions[0].close_calls == 1
    assert any(e.category == LogCategory.ERROR for e in log.entries())


def test_canceled_without_reason_uses_default_message() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    engine.emit(RecognitionEvent.canceled())
    assert _wait_for(lambda: controller.state == SessionState.IDLE)
    assert [e for e in rec.errors if e] == ["Translation canceled."]


def test_ended_event_stops_session() -> None:
    engine = FakeEngine()
    controller, _ = _controller(engine)
    controller.start(CONFIG)
    engine.emit(RecognitionEvent.ended())
    assert _wait_for(lambda: controller.state == SessionState.IDLE)
    assert engine.synthesizers[0].close_calls == 1


def test_events_after_stop_are_ignored() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    controller.stop()

    engine.emit(RecognitionEvent.final("late", {"fr": "en retard"}))
    engine.emit(RecognitionEvent.canceled("late cancel"))
    time.sleep(0.1)
    assert [t for t in rec.translations if t] == []
    assert [e for e in rec.errors if e] == []
    assert engine.synthesizers[0].calls == []


def test_old_session_events_ignored_after_restart() -> None:
    engine = FakeEngine()
    controller, rec = _controller(engine)
    controller.start(CONFIG)
    controller.stop()
    assert controller.start(CONFIG) is True
    try:
        engine.emit(RecognitionEvent.final("old", {"fr": "vieux"}), index=0)
        engine.emit(RecognitionEvent.final("new", {"fr": "neuf"}), index=1)
        assert _wait_for(lambda: len(rec.audio) == 1)
        assert [t for t in rec.translations if t] == ["neuf"]
        assert engine.synthesizers[0].calls == []
        assert engine.synthesizers[1].calls == ["neuf"]
    finally:
        controller.stop()


def test_open_failure_raises_and_leaves_idle() -> None:
    engine = FakeEngine(fail_recognition=True)
    log = DiagnosticLog()
    controller, rec = _controller(engine, log=log)

    with pytest.raises(RecognitionError):
        controller.start(CONFIG)

    assert controller.state == SessionState.IDLE
    assert controller.current_audio is None
    assert engine.synthesizers[0].close_calls == 1
    assert rec.states[-1] == SessionState.IDLE
    assert "Check mic permissions" in [e for e in rec.errors if e][0]
    assert controller.last_error


def test_concurrent_starts_open_one_session() -> None:
    engine = FakeEngine()
    controller, _ = _controller(engine)
    results: list[bool] = []
    barrier = threading.Barrier(4)

    def _start() -> None:
        barrier.wait()
        results.append(controller.start(CONFIG))

    threads = [threading.Thread(target=_start) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(2.0)
    try:
        assert sorted(results) == [False, False, False, True]
        assert len(engine.opened) == 1
    finally:
        controller.stop()
