from __future__ import annotations

import logging
import time
from typing import Protocol

from speakbridge.app.diagnostic_log import LogCategory, LogEntry
from speakbridge.app.diagnostics import hint_for_exception, summarize_exception
from speakbridge.app.logging_setup import log_event
from speakbridge.app.services import SessionServices
from speakbridge.app.state import SessionState
from speakbridge.contracts import SessionConfig
from speakbridge.errors import ConfigError, RecognitionError
from speakbridge.ui.bridge import UiUpdate, UpdateBus, UpdateKind


class UpdateSink(Protocol):
    def apply_update(self, update: UiUpdate) -> None:
        ...


def _drain_update_bus(bus: UpdateBus, sink: UpdateSink, max_items: int) -> int:
    drained = 0
    while drained < max_items:
        update = bus.pop()
        if update is None:
            break
        sink.apply_update(update)
        drained += 1
    return drained


def _start_session(
    services: SessionServices,
    config: SessionConfig,
    bus: UpdateBus,
    logger: logging.Logger | None = None,
) -> bool:
    """Start the controller, reporting failures to the UI instead of raising."""
    bus.post(UpdateKind.COUNTDOWN, None)
    try:
        started = services.controller.start(config)
    except ConfigError as e:
        log_event(logger, logging.WARNING, "session_config_invalid", detail=str(e))
        services.log.append(LogCategory.ERROR, str(e))
        bus.post(UpdateKind.ERROR, f"{e} {hint_for_exception(str(e))}")
        return False
    except RecognitionError as e:
        # The controller already cleaned up and reported the error.
        log_event(logger, logging.ERROR, "session_start_aborted", detail=summarize_exception(str(e)))
        return False
    if not started:
        services.log.append(LogCategory.STATUS, "Translation already running")
    return started


def begin_session(
    services: SessionServices,
    config: SessionConfig,
    bus: UpdateBus,
    countdown_sec: int,
    logger: logging.Logger | None = None,
) -> None:
    """Start after the countdown; with countdown_sec <= 0 this starts right away."""
    if services.controller.state != SessionState.IDLE:
        return
    services.log.append(
        LogCategory.SETTINGS,
        f"Session requested: {config.source_language} -> {config.target_language}",
        {"voice": config.voice, "countdown_sec": int(countdown_sec)},
    )
    services.countdown.begin(
        int(countdown_sec),
        lambda: _start_session(services, config, bus, logger=logger),
    )


def end_session(services: SessionServices, bus: UpdateBus) -> None:
    """Cancel a pending countdown and stop any running session."""
    if services.countdown.cancel():
        services.log.append(LogCategory.STATUS, "Countdown cancelled")
        bus.post(UpdateKind.COUNTDOWN, None)
    services.controller.stop(reason="user")


class ConsoleSink:
    """Prints updates for --console mode and tracks when the session is over."""

    def __init__(self, *, print_transcript: bool = True) -> None:
        self.print_transcript = print_transcript
        self.was_active = False
        self.finished = False
        self.last_transcript = ""

    def apply_update(self, update: UiUpdate) -> None:
        kind, payload = update.kind, update.payload
        if kind == UpdateKind.STATE:
            if payload == SessionState.ACTIVE:
                self.was_active = True
                print("Listening... speak now. Press Ctrl+C to stop.")
            elif payload == SessionState.IDLE and self.was_active:
                self.finished = True
        elif kind == UpdateKind.COUNTDOWN and payload:
            print(f"Starting in {payload}...")
        elif kind == UpdateKind.TRANSCRIPT and self.print_transcript and payload:
            self.last_transcript = str(payload)
        elif kind == UpdateKind.TRANSLATION and payload:
            if self.last_transcript:
                print(f"SRC: {self.last_transcript}")
            print(f"OUT: {payload}")
        elif kind == UpdateKind.ERROR and payload:
            print(f"Error: {payload}")
        elif kind == UpdateKind.LOG and isinstance(payload, LogEntry):
            if payload.category == LogCategory.ERROR:
                print(f"[{payload.category.value}] {payload.message}")


def run_console(
    services: SessionServices,
    config: SessionConfig,
    bus: UpdateBus,
    *,
    countdown_sec: int,
    poll_sec: float = 0.05,
    max_updates_per_tick: int = 50,
    print_transcript: bool = True,
    logger: logging.Logger | None = None,
) -> int:
    sink = ConsoleSink(print_transcript=print_transcript)
    begin_session(services, config, bus, countdown_sec, logger=logger)
    try:
        while not sink.finished:
            _drain_update_bus(bus, sink, max_updates_per_tick)
            if (
                not services.countdown.counting
                and services.controller.state == SessionState.IDLE
                and not sink.was_active
                and bus.q.empty()
            ):
                # Start was refused (config/engine error) before going active.
                return 1
            time.sleep(poll_sec)
    except KeyboardInterrupt:
        log_event(logger, logging.INFO, "console_keyboard_interrupt")
    finally:
        end_session(services, bus)
        _drain_update_bus(bus, sink, max_updates_per_tick)
    return 0
