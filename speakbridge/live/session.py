from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Mapping, Optional, Sequence

from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.app.logging_setup import log_event
from speakbridge.app.state import SessionState, SessionStateTracker
from speakbridge.audio.resource import AudioResource
from speakbridge.catalog.resolver import source_locale, translation_language_code
from speakbridge.contracts import (
    Credentials,
    RecognitionEvent,
    RecognitionEventKind,
    SessionConfig,
    SynthesisRequest,
    Voice,
)
from speakbridge.engine.base import RecognitionHandle, SpeechEngine, SynthesisHandle
from speakbridge.errors import CancellationError, ConfigError, RecognitionError, SynthesisError
from speakbridge.live.synthesis_queue import SynthesisQueue

TextObserver = Callable[[str], None]


class SessionController:
    """
    Owns the one live translation session.

    Engine callbacks are posted as messages onto a per-session queue and
    handled in order by a single event thread. Every session gets a new
    generation number; stop() bumps it, so callbacks still in flight from a
    closed recognizer are dropped instead of touching the next session.
    """

    def __init__(
        self,
        *,
        engine: SpeechEngine,
        credentials: Callable[[], Optional[Credentials]],
        voices: Mapping[str, Sequence[Voice]],
        log: DiagnosticLog | None = None,
        logger: logging.Logger | None = None,
        on_transcript: TextObserver | None = None,
        on_translation: TextObserver | None = None,
        on_audio: Callable[[AudioResource], None] | None = None,
        on_error: TextObserver | None = None,
        on_state: Callable[[SessionState], None] | None = None,
        join_timeout: float = 1.0,
    ) -> None:
        self.engine = engine
        self.credentials = credentials
        self.voices = voices
        self.log = log
        self.logger = logger
        self.on_transcript = on_transcript
        self.on_translation = on_translation
        self.on_audio = on_audio
        self.on_error = on_error
        self.on_state = on_state
        self.join_timeout = float(join_timeout)

        self._lock = threading.RLock()
        self._tracker = SessionStateTracker()
        self._generation = 0
        self._config: Optional[SessionConfig] = None
        self._recognition: Optional[RecognitionHandle] = None
        self._synthesizer: Optional[SynthesisHandle] = None
        self._synthesis: Optional[SynthesisQueue] = None
        self._events: Optional["queue.Queue[Optional[RecognitionEvent]]"] = None
        self._loop_stop: Optional[threading.Event] = None
        self._loop_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._tracker.state

    @property
    def listening(self) -> bool:
        with self._lock:
            return self._tracker.listening

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._tracker.last_error

    @property
    def config(self) -> Optional[SessionConfig]:
        with self._lock:
            return self._config

    @property
    def current_audio(self) -> Optional[AudioResource]:
        with self._lock:
            synthesis = self._synthesis
        return synthesis.current if synthesis is not None else None

    def start(self, config: SessionConfig) -> bool:
        """
        Open the engine handles and begin listening. Returns False when a
        session is already running. Raises ConfigError before touching any
        state, and RecognitionError (after cleaning up) if the engine fails.
        """
        creds = self.credentials()
        if creds is None or not creds.api_key or not creds.region:
            raise ConfigError("Missing speech key or region")
        if not config.voice:
            raise ConfigError("Please select a voice for the target language")

        with self._lock:
            if self._tracker.state != SessionState.IDLE:
                log_event(self.logger, logging.WARNING, "session_start_rejected", state=self._tracker.state.value)
                return False

            self._tracker.set_starting()
            self._generation += 1
            generation = self._generation
            self._config = config
            self._notify_state()
            self._emit(self.on_error, "")
            self._emit(self.on_transcript, "")
            self._emit(self.on_translation, "")

            locale = source_locale(config.source_language, self.voices)
            target = translation_language_code(config.target_language)
            failure = self._open_handles(generation, creds, config, locale, target)
            if failure is None:
                self._tracker.set_active()
                self._notify_state()

        if failure is not None:
            err = failure if isinstance(failure, RecognitionError) else RecognitionError(
                str(failure) or "Unable to start translation."
            )
            log_event(self.logger, logging.ERROR, "session_start_failed", detail=str(failure), generation=generation)
            self._append(LogCategory.ERROR, f"Failed to start translation: {err}")
            with self._lock:
                self._tracker.record_error(str(err))
            self._emit(self.on_error, str(err))
            self.stop(reason="start_failed")
            if err is failure:
                raise err
            raise err from failure

        log_event(
            self.logger,
            logging.INFO,
            "session_started",
            generation=generation,
            source_locale=locale,
            target=target,
            voice=config.voice,
            input_device=config.input_device,
        )
        self._append(
            LogCategory.STATUS,
            f"Translation started: {locale} -> {target}",
            {"voice": config.voice, "input_device": config.input_device},
        )
        return True

    def stop(self, reason: str | None = None) -> None:
        """Release everything the session holds. Safe to call any number of times."""
        with self._lock:
            recognition, self._recognition = self._recognition, None
            synthesizer, self._synthesizer = self._synthesizer, None
            synthesis, self._synthesis = self._synthesis, None
            loop_thread, self._loop_thread = self._loop_thread, None
            loop_stop, self._loop_stop = self._loop_stop, None
            events, self._events = self._events, None

            was_running = self._tracker.state != SessionState.IDLE
            if not was_running and recognition is None and synthesizer is None and synthesis is None:
                return

            self._tracker.set_stopping()
            self._notify_state()
            self._generation += 1
            self._config = None

            if loop_stop is not None:
                loop_stop.set()
            if events is not None:
                events.put_nowait(None)
            if recognition is not None:
                self._close_quietly("recognition", recognition.close)
            if synthesis is not None:
                self._close_quietly("synthesis_queue", synthesis.close)
            if synthesizer is not None:
                self._close_quietly("synthesizer", synthesizer.close)

            self._tracker.set_idle()
            self._notify_state()

        log_event(self.logger, logging.INFO, "session_stopped", reason=reason)
        if was_running:
            self._append(LogCategory.STATUS, "Translation stopped", {"reason": reason})

        current = threading.current_thread()
        if loop_thread is not None and loop_thread is not current:
            loop_thread.join(timeout=self.join_timeout)
        if synthesis is not None:
            synthesis.join(timeout=self.join_timeout)

    def _open_handles(
        self,
        generation: int,
        creds: Credentials,
        config: SessionConfig,
        locale: str,
        target: str,
    ) -> Optional[Exception]:
        try:
            self._synthesizer = self.engine.open_synthesizer(creds, config.voice)
            self._synthesis = SynthesisQueue(
                synthesizer=self._synthesizer,
                on_audio=self.on_audio,
                on_error=self._on_synthesis_error,
                log=self.log,
                logger=self.logger,
            )
            self._synthesis.start()

            events: "queue.Queue[Optional[RecognitionEvent]]" = queue.Queue()
            loop_stop = threading.Event()
            self._events = events
            self._loop_stop = loop_stop
            self._loop_thread = threading.Thread(
                target=self._event_loop,
                args=(generation, events, loop_stop),
                name="speakbridge-session-events",
                daemon=True,
            )
            self._loop_thread.start()

            self._recognition = self.engine.open_recognition(
                creds,
                source_locale=locale,
                target_language=target,
                input_device=config.input_device,
                on_event=lambda event: self._post(generation, events, event),
            )
        except Exception as e:
            return e
        return None

    def _post(
        self,
        generation: int,
        events: "queue.Queue[Optional[RecognitionEvent]]",
        event: RecognitionEvent,
    ) -> None:
        # Called from engine threads.
        if generation != self._generation:
            log_event(self.logger, logging.DEBUG, "stale_event_dropped", kind=event.kind.value)
            return
        events.put(event)

    def _event_loop(
        self,
        generation: int,
        events: "queue.Queue[Optional[RecognitionEvent]]",
        loop_stop: threading.Event,
    ) -> None:
        while not loop_stop.is_set():
            try:
                event = events.get(timeout=0.2)
            except queue.Empty:
                continue
            if event is None or loop_stop.is_set():
                return
            if generation != self._generation:
                return
            try:
                self._dispatch(event)
            except Exception:
                if self.logger is not None:
                    self.logger.exception("session_event_failed", extra={"kind": event.kind.value})

    def _dispatch(self, event: RecognitionEvent) -> None:
        if event.kind == RecognitionEventKind.INTERIM:
            self._emit(self.on_transcript, event.text)
        elif event.kind == RecognitionEventKind.FINAL:
            self._handle_final(event)
        elif event.kind == RecognitionEventKind.CANCELED:
            self._handle_canceled(event.reason)
        elif event.kind == RecognitionEventKind.ENDED:
            log_event(self.logger, logging.INFO, "session_ended_by_engine")
            self._append(LogCategory.STATUS, "Recognition session ended")
            self.stop(reason="ended")

    def _handle_final(self, event: RecognitionEvent) -> None:
        with self._lock:
            config = self._config
            synthesis = self._synthesis
        if config is None or synthesis is None:
            return

        code = translation_language_code(config.target_language)
        translated = event.translations.get(code) if event.translated else None
        if not translated:
            log_event(self.logger, logging.DEBUG, "final_without_translation", target=code)
            return

        self._append(LogCategory.SPEECH, f"Recognized: {event.text}")
        self._append(LogCategory.TRANSLATION, f"Translated: {translated}", {"language": code})
        self._emit(self.on_translation, translated)
        synthesis.enqueue(SynthesisRequest(text=translated, target_language=config.target_language))

    def _handle_canceled(self, reason: str | None) -> None:
        err = CancellationError(reason)
        log_event(self.logger, logging.WARNING, "recognition_canceled", reason=reason)
        self._append(LogCategory.ERROR, f"Translation canceled: {err}", {"reason": reason})
        with self._lock:
            self._tracker.record_error(str(err))
        self._emit(self.on_error, str(err))
        self.stop(reason="canceled")

    def _on_synthesis_error(self, err: SynthesisError) -> None:
        with self._lock:
            self._tracker.record_error(str(err))
        self._emit(self.on_error, "Unable to synthesize the translated audio.")

    def _close_quietly(self, what: str, close: Callable[[], None]) -> None:
        try:
            close()
        except Exception as e:
            log_event(self.logger, logging.WARNING, f"{what}_close_failed", detail=str(e))
            self._append(LogCategory.ERROR, f"Error while closing {what}: {e}")

    def _notify_state(self) -> None:
        if self.on_state is not None:
            self.on_state(self._tracker.state)

    def _append(self, category: LogCategory, message: str, metadata: dict[str, Any] | None = None) -> None:
        if self.log is not None:
            self.log.append(category, message, metadata)

    @staticmethod
    def _emit(observer: TextObserver | None, text: str) -> None:
        if observer is not None:
            observer(text)
