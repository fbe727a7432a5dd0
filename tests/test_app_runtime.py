from __future__ import annotations

from typing import Optional

from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.app.runtime import (
    ConsoleSink,
    _drain_update_bus,
    _start_session,
    begin_session,
    end_session,
    run_console,
)
from speakbridge.app.services import SessionServices
from speakbridge.app.state import SessionState
from speakbridge.contracts import Credentials, SessionConfig, SynthesisOutcome, Voice
from speakbridge.engine.base import RecognitionHandle, SpeechEngine, SynthesisHandle
from speakbridge.live.countdown import CountdownGate
from speakbridge.live.session import SessionController
from speakbridge.ui.bridge import UiUpdate, UpdateBus, UpdateKind


# --- fakes ---

class _Recognition(RecognitionHandle):
    def close(self) -> None:
        pass


class _Synthesizer(SynthesisHandle):
    def synthesize(self, text: str) -> SynthesisOutcome:
        return SynthesisOutcome(audio=b"wav")

    def close(self) -> None:
        pass


class _Engine(SpeechEngine):
    def __init__(self) -> None:
        self.opened = 0

    @property
    def name(self) -> str:
        return "fake"

    def open_recognition(self, credentials, *, source_locale, target_language, input_device, on_event):
        self.opened += 1
        return _Recognition()

    def open_synthesizer(self, credentials, voice):
        return _Synthesizer()


class _FakeSink:
    def __init__(self) -> None:
        self.updates: list[UiUpdate] = []

    def apply_update(self, update: UiUpdate) -> None:
        self.updates.append(update)


VOICES = {"fr-FR": [Voice("fr-FR-DeniseNeural", "Denise", "Female")]}
CONFIG = SessionConfig(source_language="en", target_language="fr", voice="fr-FR-DeniseNeural")


def _services(
    bus: UpdateBus,
    creds: Optional[Credentials] = Credentials(api_key="key", region="westus"),
) -> tuple[SessionServices, _Engine]:
    engine = _Engine()
    log = DiagnosticLog(on_append=lambda entry: bus.post(UpdateKind.LOG, entry))
    controller = SessionController(
        engine=engine,
        credentials=lambda: creds,
        voices=VOICES,
        log=log,
        on_state=lambda state: bus.post(UpdateKind.STATE, state),
        on_error=lambda text: bus.post(UpdateKind.ERROR, text),
    )
    services = SessionServices(
        languages={},
        voices=VOICES,
        log=log,
        player=None,  # type: ignore[arg-type]
        controller=controller,
        countdown=CountdownGate(on_tick=lambda n: bus.post(UpdateKind.COUNTDOWN, n), interval=0.01),
    )
    return services, engine


def _kinds(bus: UpdateBus) -> list[UpdateKind]:
    sink = _FakeSink()
    _drain_update_bus(bus, sink, max_items=1000)
    return [u.kind for u in sink.updates]


def test_drain_update_bus_max_items() -> None:
    bus = UpdateBus(maxsize=10)
    sink = _FakeSink()
    for i in range(4):
        bus.post(UpdateKind.TRANSCRIPT, f"line-{i}")
    drained = _drain_update_bus(bus, sink, max_items=3)
    assert drained == 3
    assert [u.payload for u in sink.updates] == ["line-0", "line-1", "line-2"]


def test_begin_session_without_countdown_starts_immediately() -> None:
    bus = UpdateBus(maxsize=100)
    services, engine = _services(bus)
    begin_session(services, CONFIG, bus, countdown_sec=0)
    try:
        assert services.controller.state == SessionState.ACTIVE
        assert engine.opened == 1
        assert services.log.entries()[-1].category == LogCategory.SETTINGS
    finally:
        end_session(services, bus)
    assert services.controller.state == SessionState.IDLE


def test_start_session_reports_config_error() -> None:
    bus = UpdateBus(maxsize=100)
    services, engine = _services(bus, creds=None)
    assert _start_session(services, CONFIG, bus) is False

    sink = _FakeSink()
    _drain_update_bus(bus, sink, max_items=100)
    errors = [u.payload for u in sink.updates if u.kind == UpdateKind.ERROR]
    assert errors and errors[0].startswith("Missing speech key or region")
    assert "SPEAKBRIDGE_SPEECH_KEY" in errors[0]
    assert services.log.entries()[0].category == LogCategory.ERROR
    assert engine.opened == 0


def test_start_session_when_running_returns_false() -> None:
    bus = UpdateBus(maxsize=100)
    services, engine = _services(bus)
    assert _start_session(services, CONFIG, bus) is True
    try:
        assert _start_session(services, CONFIG, bus) is False
        assert engine.opened == 1
        assert services.log.entries()[0].message == "Translation already running"
    finally:
        end_session(services, bus)


def test_end_session_cancels_countdown() -> None:
    bus = UpdateBus(maxsize=100)
    services, engine = _services(bus)
    services.countdown.interval = 5.0
    begin_session(services, CONFIG, bus, countdown_sec=3)
    assert services.countdown.counting

    end_session(services, bus)
    assert not services.countdown.counting
    assert engine.opened == 0
    assert services.log.entries()[0].message == "Countdown cancelled"
    assert UpdateKind.COUNTDOWN in _kinds(bus)


def test_console_sink_tracks_session_end(capsys) -> None:
    sink = ConsoleSink()
    sink.apply_update(UiUpdate(UpdateKind.STATE, SessionState.ACTIVE))
    sink.apply_update(UiUpdate(UpdateKind.TRANSCRIPT, "hello"))
    sink.apply_update(UiUpdate(UpdateKind.TRANSLATION, "bonjour"))
    sink.apply_update(UiUpdate(UpdateKind.STATE, SessionState.IDLE))

    out = capsys.readouterr().out
    assert "SRC: hello" in out
    assert "OUT: bonjour" in out
    assert sink.finished


def test_console_sink_hides_transcript_when_disabled(capsys) -> None:
    sink = ConsoleSink(print_transcript=False)
    sink.apply_update(UiUpdate(UpdateKind.TRANSCRIPT, "hello"))
    sink.apply_update(UiUpdate(UpdateKind.TRANSLATION, "bonjour"))

    out = capsys.readouterr().out
    assert "SRC:" not in out
    assert "OUT: bonjour" in out


def test_run_console_returns_error_when_start_refused(capsys) -> None:
    bus = UpdateBus(maxsize=100)
    services, _ = _services(bus, creds=None)
    code = run_console(services, CONFIG, bus, countdown_sec=0, poll_sec=0.01)
    assert code == 1
    assert "Missing speech key or region" in capsys.readouterr().out
